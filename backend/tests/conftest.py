"""Pytest fixtures shared by the unit, integration and security suites.

Provides:
- A frozen clock and an in-memory record store
- Fully wired services around them
- The FastAPI app and an async HTTP client bound to it
- Helpers to seed tenants and issue session tokens

Usage:
    async def test_list_sessions(client, issue_token):
        token = await issue_token("tenant-a", "user-1")
        response = await client.get("/api/v1/auth/sessions", headers={"Authorization": f"Bearer {token}"})
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Set environment variables BEFORE any imports to ensure they take effect
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-256-bits-minimum-length-required-for-security")
os.environ.setdefault("IP_HASH_SALT", "test-ip-salt")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_JSON", "false")

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

import httpx
import pytest

from audit.service import AuditTrail
from auth.device import DeviceMeta
from auth.schemas import SessionClaims
from clock import FrozenClock
from config import Settings
from dependencies import build_services
from infrastructure.memory_store import InMemoryRecordStore
from main import create_app
from restrictions.cache import InMemoryRestrictionCache

TEST_JWT_SECRET = os.environ["JWT_SECRET"]

# Fixed "now" in the past so real-time checks never interfere
NOW = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        JWT_SECRET=TEST_JWT_SECRET,
        IP_HASH_SALT="test-ip-salt",
        SESSION_COOKIE_SECURE=False,
        RESTRICTION_CACHE_BACKEND="memory",
        ENVIRONMENT="testing",
        LOG_JSON=False,
    )


@pytest.fixture
def services(settings, store, clock):
    return build_services(
        settings=settings,
        store=store,
        clock=clock,
        restriction_cache=InMemoryRestrictionCache(settings.RESTRICTION_CACHE_TTL_SECONDS, clock=clock),
    )


@pytest.fixture
def audit_trail(services) -> AuditTrail:
    return services.audit_trail


@pytest.fixture
def token_service(services):
    return services.token_service


@pytest.fixture
def session_store(services):
    return services.session_store


@pytest.fixture
def app(services):
    return create_app(services)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest.fixture
def issue_token(token_service):
    """Issue a token (and its session row) for a user of a tenant."""

    async def _issue(tenant_id: str, user_id: str, role: str = "staff", name: str = None, **kwargs) -> str:
        claims = SessionClaims(user_id=user_id, tenant_id=tenant_id, role=role, name=name)
        device = kwargs.pop("device_meta", DeviceMeta(user_agent="pytest", ip_address="203.0.113.7"))
        return await token_service.create_token(claims, device_meta=device, **kwargs)

    return _issue


@pytest.fixture
def seed_tenant(store):
    """Seed billing/usage records for a tenant.

    Args (of the returned coroutine):
        tenant_id: Tenant to seed
        created_days_ago: Age of the billing account (None: no account)
        students: Active student count
        deleted_students: Soft-deleted student count (never counted)
        plan: Paid plan covering now (None: free)
        now: Reference time
    """

    async def _seed(
        tenant_id: str,
        created_days_ago=30,
        students: int = 0,
        deleted_students: int = 0,
        plan: str = None,
        now: datetime = NOW,
    ) -> None:
        if created_days_ago is not None:
            await store.insert_many("tenant_accounts", [{
                "tenant_id": tenant_id,
                "account_id": f"acct-{tenant_id}",
                "created_at": now - timedelta(days=created_days_ago),
            }])
        if plan is not None:
            await store.insert_many("payment_records", [{
                "tenant_id": tenant_id,
                "account_id": f"acct-{tenant_id}",
                "plan": plan,
                "start_date": now - timedelta(days=1),
                "end_date": now + timedelta(days=29),
            }])
        records = [
            {"tenant_id": tenant_id, "name": f"student-{i}", "is_deleted": False}
            for i in range(students)
        ] + [
            {"tenant_id": tenant_id, "name": f"gone-{i}", "is_deleted": True}
            for i in range(deleted_students)
        ]
        if records:
            await store.insert_many("students", records)

    return _seed
