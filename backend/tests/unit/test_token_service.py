"""Unit tests for TokenService (JWT + session store)

Tests cover:
- Issuing tokens with a persisted session
- Resolving tokens into session contexts
- Revoked, expired, unknown and mismatched sessions all resolve to (None, None)
"""

from datetime import timedelta

import pytest

from auth.errors import InvalidOrExpiredSession, RevokedSession
from auth.jwt import encode_token
from auth.schemas import SessionClaims
from auth.service import TokenService


class TestCreateToken:
    """Test token issuing"""

    async def test_token_carries_session_claims(self, token_service, issue_token):
        token = await issue_token("tenant-a", "user-1", role="admin", name="Ada")
        claims = token_service.verify_token(token)

        assert claims["sub"] == "user-1"
        assert claims["tenant_id"] == "tenant-a"
        assert claims["role"] == "admin"
        assert claims["name"] == "Ada"
        assert claims["exp"] - claims["iat"] == 24 * 60 * 60

    async def test_session_row_matches_token(self, token_service, session_store, issue_token):
        token = await issue_token("tenant-a", "user-1")
        claims = token_service.verify_token(token)

        record = await session_store.lookup(claims["jti"], "tenant-a")
        assert record.user_id == "user-1"
        assert int(record.expires_at.timestamp()) == claims["exp"]

    @pytest.mark.parametrize("ttl", [timedelta(minutes=30), 1800])
    async def test_custom_ttl(self, token_service, ttl):
        token = await token_service.create_token(
            SessionClaims(user_id="u", tenant_id="t", role="staff"), ttl=ttl
        )
        claims = token_service.verify_token(token)
        assert claims["exp"] - claims["iat"] == 1800

    @pytest.mark.parametrize("ttl", [0, -5, timedelta(0)])
    async def test_non_positive_ttl_rejected(self, token_service, ttl):
        with pytest.raises(ValueError):
            await token_service.create_token(SessionClaims(user_id="u", tenant_id="t", role="staff"), ttl=ttl)

    def test_secret_required(self, session_store):
        with pytest.raises(ValueError):
            TokenService(session_store, secret="")


class TestExtractSession:
    """Test resolving a token into a trusted context"""

    async def test_live_session_resolves(self, token_service, issue_token):
        token = await issue_token("tenant-a", "user-1", role="instructor")

        claims, context = await token_service.extract_session_from_jwt(token)

        assert claims["jti"] == context.token_id
        assert context.tenant_id == "tenant-a"
        assert context.user_id == "user-1"
        assert context.role == "instructor"

    async def test_resolution_touches_last_active(self, token_service, session_store, issue_token, clock):
        token = await issue_token("tenant-a", "user-1")
        later = clock.advance(minutes=10)

        _, context = await token_service.extract_session_from_jwt(token)

        record = await session_store.lookup(context.token_id, "tenant-a")
        assert record.last_active_at == later

    async def test_revoked_session_rejected_while_signature_still_valid(self, token_service, issue_token, clock):
        token = await issue_token("tenant-a", "user-1")
        clock.advance(minutes=1)
        jti = token_service.verify_token(token)["jti"]

        assert await token_service.revoke_session(jti, "tenant-a") is True

        assert token_service.verify_token(token) is not None
        assert await token_service.extract_session_from_jwt(token) == (None, None)

    async def test_expired_token_rejected(self, token_service, issue_token, clock):
        token = await issue_token("tenant-a", "user-1")
        clock.advance(days=1)

        assert token_service.verify_token(token) is None
        assert await token_service.extract_session_from_jwt(token) == (None, None)

    async def test_token_without_session_row_rejected(self, token_service, clock):
        now = clock()
        token = encode_token(
            {"sub": "user-1", "tenant_id": "tenant-a", "jti": "never-stored", "iat": now, "exp": now + timedelta(hours=1)},
            secret=token_service._secret,
        )
        assert await token_service.extract_session_from_jwt(token) == (None, None)

    async def test_tenant_claim_must_match_session(self, token_service, issue_token, clock):
        token = await issue_token("tenant-a", "user-1")
        claims = token_service.verify_token(token)
        forged = encode_token(dict(claims, tenant_id="tenant-b"), secret=token_service._secret)

        assert await token_service.extract_session_from_jwt(forged) == (None, None)

    async def test_invalid_and_revoked_are_indistinguishable(self, token_service, issue_token):
        token = await issue_token("tenant-a", "user-1")
        await token_service.revoke_session(token_service.verify_token(token)["jti"], "tenant-a")

        assert await token_service.extract_session_from_jwt(token) == await token_service.extract_session_from_jwt("garbage")

    async def test_store_failure_resolves_to_unauthenticated(self, token_service, issue_token, monkeypatch):
        token = await issue_token("tenant-a", "user-1")

        async def broken_lookup(*args, **kwargs):
            raise ConnectionError("database unavailable")

        monkeypatch.setattr(token_service.session_store, "lookup", broken_lookup)
        assert await token_service.extract_session_from_jwt(token) == (None, None)


class TestValidateSession:
    """The internal reasons are distinct even though the outcome is not"""

    async def test_revoked_reason(self, token_service, issue_token):
        token = await issue_token("tenant-a", "user-1")
        claims = token_service.verify_token(token)
        await token_service.revoke_session(claims["jti"], "tenant-a")

        with pytest.raises(RevokedSession):
            await token_service.validate_session(claims)

    async def test_expired_row_reason(self, token_service, issue_token, clock):
        token = await issue_token("tenant-a", "user-1")
        claims = token_service.verify_token(token)
        clock.advance(hours=24)

        with pytest.raises(InvalidOrExpiredSession, match="expired"):
            await token_service.validate_session(claims)

    async def test_missing_claims_reason(self, token_service):
        with pytest.raises(InvalidOrExpiredSession):
            await token_service.validate_session({"sub": "user-1"})


class TestRevokeAll:
    """Bulk revocation through the service"""

    async def test_logout_everywhere_else(self, token_service, issue_token):
        tokens = [await issue_token("tenant-a", "user-1") for _ in range(3)]
        keep = token_service.verify_token(tokens[0])["jti"]

        assert await token_service.revoke_all_user_sessions("user-1", "tenant-a", except_token_id=keep) == 2
        assert await token_service.revoke_all_user_sessions("user-1", "tenant-a", except_token_id=keep) == 0

        _, context = await token_service.extract_session_from_jwt(tokens[0])
        assert context is not None
        for token in tokens[1:]:
            assert await token_service.extract_session_from_jwt(token) == (None, None)
