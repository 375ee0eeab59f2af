"""JWT token signing and verification

This module handles JWT encoding and stateless verification. It checks the
signature and expiry only. Whether the session behind a token is still alive
is a separate, stateful fact held by the SessionStore; see auth.service.

JWT Token Claims Structure:
===========================

Standard JWT Claims:
- sub (Subject): User ID
- jti (JWT ID): Session token id, the SessionStore key
  Example: "9f2c4e0b7a1d4c3e8b6a5f4d3c2b1a09"
- iat (Issued At): Unix timestamp when token was created
- exp (Expiration): Unix timestamp when token expires

Custom Claims:
- user_id: Same as sub, kept explicit for consumers that read it by name
- tenant_id: Tenant the session is bound to; must equal the session row's tenant
- role: User's role within the tenant

Security Properties:
- Algorithm: HS256 (HMAC-SHA256 symmetric signing) by default
- Secret: JWT_SECRET setting (minimum 256 bits)
- Token tamper-proof (signature validation fails if claims modified)
- Expiry is checked against the injected clock, not the wall clock, so the
  same clock drives session rows and token validity

Example Token Payload:
{
  "sub": "user-42",
  "user_id": "user-42",
  "tenant_id": "academy-7",
  "role": "admin",
  "jti": "9f2c4e0b7a1d4c3e8b6a5f4d3c2b1a09",
  "iat": 1704368400,
  "exp": 1704454800
}
"""

import logging
import secrets
from datetime import datetime
from typing import Any, Dict, Optional

import jwt

from clock import Clock, utc_now
from config import get_settings

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "tenant_id", "jti", "iat", "exp")


def generate_token_id() -> str:
    """Generate a unique JWT ID (jti claim) for session tracking."""
    return secrets.token_hex(16)


def _get_jwt_secret() -> str:
    """Get JWT_SECRET from settings.

    Raises:
        ValueError: If JWT_SECRET is empty
    """
    secret = get_settings().JWT_SECRET
    if not secret:
        raise ValueError("JWT_SECRET is not configured")
    return secret


def encode_token(
    payload: Dict[str, Any],
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
) -> str:
    """Sign a claims dictionary.

    Args:
        payload: Claims; datetimes for iat/exp are converted to Unix seconds
        secret: Signing key (defaults to JWT_SECRET)
        algorithm: JWT algorithm (defaults to JWT_ALGORITHM)

    Returns:
        str: Signed JWT token
    """
    claims = dict(payload)
    for key in ("iat", "exp"):
        if isinstance(claims.get(key), datetime):
            claims[key] = int(claims[key].timestamp())
    return jwt.encode(
        claims,
        secret or _get_jwt_secret(),
        algorithm=algorithm or get_settings().JWT_ALGORITHM,
    )


def decode_token(
    token: str,
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    clock: Clock = utc_now,
) -> Dict[str, Any]:
    """Decode and validate a JWT token.

    Time checks use ``clock`` only; PyJWT's own wall-clock checks are off.

    Raises:
        jwt.ExpiredSignatureError: If token has expired
        jwt.InvalidTokenError: If token is invalid, tampered or lacks claims
    """
    payload = jwt.decode(
        token,
        secret or _get_jwt_secret(),
        algorithms=[algorithm or get_settings().JWT_ALGORITHM],
        options={"verify_exp": False, "verify_iat": False, "require": list(REQUIRED_CLAIMS)},
    )
    if int(payload["exp"]) <= int(clock().timestamp()):
        raise jwt.ExpiredSignatureError("Token has expired")
    return payload


def verify_token(
    token: Optional[str],
    secret: Optional[str] = None,
    algorithm: Optional[str] = None,
    clock: Clock = utc_now,
) -> Optional[Dict[str, Any]]:
    """Validate signature and expiry only.

    Returns the claims, or None for any invalid token. Callers must still
    check the session store before trusting the claims: a revoked session
    keeps a perfectly valid signature.
    """
    if not token:
        return None
    try:
        return decode_token(token, secret=secret, algorithm=algorithm, clock=clock)
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected token: %s", e)
        return None
