"""Token issuing and session resolution.

``TokenService`` pairs stateless JWTs with the SessionStore:

- ``create_token`` signs a token and persists the matching session row.
- ``verify_token`` checks signature and expiry only.
- ``extract_session_from_jwt`` is the one call request handling should use:
  it verifies the token, loads the session, and checks revocation, expiry and
  tenant agreement. It never raises; any failure yields ``(None, None)`` so
  call sites branch on ``None`` instead of catching routine auth failures.

Usage:
    claims, context = await token_service.extract_session_from_jwt(token)
    if context is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
"""

import logging
from datetime import timedelta
from typing import Any, Dict, NamedTuple, Optional, Union

from clock import Clock, utc_now

from .device import DeviceMeta
from .errors import InvalidOrExpiredSession, NotAuthenticated, RevokedSession
from .jwt import encode_token, generate_token_id, verify_token
from .schemas import SessionClaims, SessionContext, SessionRecord
from .session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(days=1)


class SessionExtraction(NamedTuple):
    """Result of extract_session_from_jwt; both fields are None on failure."""
    claims: Optional[Dict[str, Any]]
    session_context: Optional[SessionContext]


UNAUTHENTICATED = SessionExtraction(None, None)


class TokenService:
    """Issues tokens and resolves them back into trusted session contexts."""

    def __init__(
        self,
        session_store: SessionStore,
        secret: str,
        algorithm: str = "HS256",
        clock: Clock = utc_now,
        default_ttl: timedelta = DEFAULT_SESSION_TTL,
    ):
        if not secret:
            raise ValueError("A signing secret is required")
        self.session_store = session_store
        self._secret = secret
        self._algorithm = algorithm
        self._clock = clock
        self.default_ttl = default_ttl

    async def create_token(
        self,
        claims: Union[SessionClaims, Dict[str, Any]],
        ttl: Optional[Union[timedelta, int]] = None,
        device_meta: Optional[DeviceMeta] = None,
    ) -> str:
        """Issue a signed token and persist its session.

        Args:
            claims: user_id, tenant_id, role (+ optional email, name)
            ttl: Lifetime as timedelta or seconds (default: default_ttl)
            device_meta: Device and client information captured at login

        Returns:
            str: Signed JWT whose ``jti`` is the session token id
        """
        identity = claims if isinstance(claims, SessionClaims) else SessionClaims(**claims)
        if ttl is None:
            lifetime = self.default_ttl
        elif isinstance(ttl, timedelta):
            lifetime = ttl
        else:
            lifetime = timedelta(seconds=ttl)
        if lifetime <= timedelta(0):
            raise ValueError("ttl must be positive")

        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + lifetime
        token_id = generate_token_id()

        payload = {
            "sub": identity.user_id,
            "user_id": identity.user_id,
            "tenant_id": identity.tenant_id,
            "role": identity.role,
            "jti": token_id,
            "iat": issued_at,
            "exp": expires_at,
        }
        if identity.email:
            payload["email"] = identity.email
        if identity.name:
            payload["name"] = identity.name

        token = encode_token(payload, secret=self._secret, algorithm=self._algorithm)
        await self.session_store.create(
            token_id=token_id,
            user_id=identity.user_id,
            tenant_id=identity.tenant_id,
            issued_at=issued_at,
            expires_at=expires_at,
            device_meta=device_meta,
        )
        logger.info("Session issued", extra={"tenant_id": identity.tenant_id, "user_id": identity.user_id})
        return token

    def verify_token(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """Signature and expiry only. A revoked session still verifies here."""
        return verify_token(token, secret=self._secret, algorithm=self._algorithm, clock=self._clock)

    async def validate_session(self, claims: Dict[str, Any]) -> SessionRecord:
        """Check the session behind already-verified claims.

        Raises:
            InvalidOrExpiredSession: Missing claims, unknown session, expired
                session row, or user/tenant disagreement with the token
            RevokedSession: The session has been revoked
        """
        token_id = claims.get("jti")
        tenant_id = claims.get("tenant_id")
        user_id = claims.get("sub") or claims.get("user_id")
        if not token_id or not tenant_id or not user_id:
            raise InvalidOrExpiredSession("token is missing session claims")

        session = await self.session_store.lookup(token_id, tenant_id)
        if session is None:
            raise InvalidOrExpiredSession("session not found")
        if session.tenant_id != tenant_id or session.user_id != user_id:
            raise InvalidOrExpiredSession("session does not match token identity")
        if session.is_revoked:
            raise RevokedSession(f"session revoked ({session.revoked_reason})")
        if not session.is_active(self._clock()):
            raise InvalidOrExpiredSession("session expired")
        return session

    async def extract_session_from_jwt(self, token: Optional[str]) -> SessionExtraction:
        """Resolve a token into ``(claims, session_context)`` or ``(None, None)``.

        Invalid signatures, expired tokens, unknown sessions, revoked sessions
        and tenant mismatches all produce the same ``(None, None)``.
        """
        claims = self.verify_token(token)
        if claims is None:
            return UNAUTHENTICATED

        try:
            session = await self.validate_session(claims)
            await self.session_store.touch(session.token_id, session.tenant_id)
        except NotAuthenticated as e:
            logger.info("Session rejected: %s", e.reason)
            return UNAUTHENTICATED
        except Exception:
            logger.exception("Session lookup failed")
            return UNAUTHENTICATED

        context = SessionContext(
            user_id=session.user_id,
            tenant_id=session.tenant_id,
            role=str(claims.get("role") or ""),
            token_id=session.token_id,
            session_id=session.id,
            name=claims.get("name"),
            email=claims.get("email"),
        )
        return SessionExtraction(claims, context)

    async def revoke_session(
        self,
        token_id: str,
        tenant_id: str,
        reason: str = "logout",
        revoked_by: Optional[str] = None,
    ) -> bool:
        return await self.session_store.revoke_session(token_id, tenant_id, reason, revoked_by)

    async def revoke_all_user_sessions(
        self,
        user_id: str,
        tenant_id: str,
        reason: str = "logout_all",
        except_token_id: Optional[str] = None,
        revoked_by: Optional[str] = None,
    ) -> int:
        return await self.session_store.revoke_all_user_sessions(
            user_id, tenant_id, reason, except_token_id, revoked_by
        )
