"""Unit tests for JWT signing and stateless verification

Tests cover:
- Token creation with datetime claims
- Signature, algorithm and required-claim validation
- Expiry checked against the injected clock
"""

from datetime import timedelta

import jwt
import pytest

from auth.jwt import REQUIRED_CLAIMS, decode_token, encode_token, generate_token_id, verify_token

SECRET = "unit-test-secret-key-256-bits-minimum-length-required"


def _payload(clock, **overrides):
    now = clock()
    payload = {
        "sub": "user-1",
        "user_id": "user-1",
        "tenant_id": "tenant-a",
        "role": "admin",
        "jti": generate_token_id(),
        "iat": now,
        "exp": now + timedelta(hours=1),
    }
    payload.update(overrides)
    return payload


class TestEncodeToken:
    """Test token creation"""

    def test_datetime_claims_become_unix_seconds(self, clock):
        token = encode_token(_payload(clock), secret=SECRET, algorithm="HS256")

        claims = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_exp": False, "verify_iat": False})
        assert claims["iat"] == int(clock().timestamp())
        assert claims["exp"] == int(clock().timestamp()) + 3600

    def test_token_ids_are_unique_hex(self):
        ids = {generate_token_id() for _ in range(100)}
        assert len(ids) == 100
        assert all(len(token_id) == 32 for token_id in ids)


class TestDecodeToken:
    """Test validation"""

    def test_round_trip(self, clock):
        token = encode_token(_payload(clock), secret=SECRET, algorithm="HS256")
        claims = decode_token(token, secret=SECRET, algorithm="HS256", clock=clock)
        assert claims["tenant_id"] == "tenant-a"
        assert set(REQUIRED_CLAIMS) <= set(claims)

    def test_expiry_follows_injected_clock(self, clock):
        token = encode_token(_payload(clock), secret=SECRET, algorithm="HS256")

        clock.advance(minutes=59)
        assert verify_token(token, secret=SECRET, algorithm="HS256", clock=clock) is not None

        clock.advance(minutes=1)
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_token(token, secret=SECRET, algorithm="HS256", clock=clock)

    def test_wrong_secret_rejected(self, clock):
        token = encode_token(_payload(clock), secret=SECRET, algorithm="HS256")
        assert verify_token(token, secret="another-secret-of-sufficient-length-0000", algorithm="HS256", clock=clock) is None

    def test_tampered_payload_rejected(self, clock):
        token = encode_token(_payload(clock), secret=SECRET, algorithm="HS256")
        forged = encode_token(_payload(clock, tenant_id="tenant-b"), secret="attacker-key-attacker-key-attacker-key", algorithm="HS256")
        header, _, signature = token.split(".")
        _, forged_payload, _ = forged.split(".")

        assert verify_token(f"{header}.{forged_payload}.{signature}", secret=SECRET, algorithm="HS256", clock=clock) is None

    @pytest.mark.parametrize("claim", ["sub", "tenant_id", "jti", "exp"])
    def test_missing_required_claim_rejected(self, clock, claim):
        payload = _payload(clock)
        del payload[claim]
        token = encode_token(payload, secret=SECRET, algorithm="HS256")
        assert verify_token(token, secret=SECRET, algorithm="HS256", clock=clock) is None

    def test_unsigned_token_rejected(self, clock):
        claims = _payload(clock)
        claims["iat"] = int(claims["iat"].timestamp())
        claims["exp"] = int(claims["exp"].timestamp())
        token = jwt.encode(claims, key=None, algorithm="none")
        assert verify_token(token, secret=SECRET, algorithm="HS256", clock=clock) is None

    @pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
    def test_garbage_rejected(self, clock, token):
        assert verify_token(token, secret=SECRET, algorithm="HS256", clock=clock) is None
