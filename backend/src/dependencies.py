"""Service wiring and global FastAPI dependencies.

``build_services`` assembles the tenancy/session/restriction/audit services
around one record store. The FastAPI app keeps the result on
``app.state.services``; endpoints reach individual services through the
``get_*`` dependencies below.

Usage:
    @router.post("/attendance")
    async def mark_attendance(
        gate: RestrictionGate = Depends(get_restriction_gate),
        session: SessionContext = Depends(get_session_context),
    ):
        ...
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from audit.service import AuditTrail
from auth.service import TokenService
from auth.session_store import SessionStore
from clock import Clock, utc_now
from config import Settings, get_settings
from database import build_session_factory, get_engine
from infrastructure.repositories.sqlalchemy_record_store import SqlAlchemyRecordStore
from restrictions.cache import InMemoryRestrictionCache, RedisRestrictionCache, RestrictionCache
from restrictions.service import RestrictionGate
from tenancy.ports import RecordStorePort


@dataclass
class Services:
    settings: Settings
    store: RecordStorePort
    session_store: SessionStore
    token_service: TokenService
    restriction_gate: RestrictionGate
    audit_trail: AuditTrail
    clock: Clock


def build_restriction_cache(settings: Settings, clock: Clock = utc_now) -> RestrictionCache:
    """Pick the restriction cache backend from RESTRICTION_CACHE_BACKEND."""
    backend = settings.RESTRICTION_CACHE_BACKEND.lower()
    if backend == "redis":
        return RedisRestrictionCache.from_url(settings.REDIS_URL, settings.RESTRICTION_CACHE_TTL_SECONDS)
    if backend == "memory":
        return InMemoryRestrictionCache(settings.RESTRICTION_CACHE_TTL_SECONDS, clock=clock)
    raise ValueError(f"Unknown RESTRICTION_CACHE_BACKEND: {settings.RESTRICTION_CACHE_BACKEND}")


def build_default_store(settings: Settings) -> RecordStorePort:
    return SqlAlchemyRecordStore(build_session_factory(get_engine(settings.DATABASE_URL)))


def build_services(
    settings: Optional[Settings] = None,
    store: Optional[RecordStorePort] = None,
    clock: Clock = utc_now,
    restriction_cache: Optional[RestrictionCache] = None,
) -> Services:
    """Assemble every service around one record store."""
    settings = settings or get_settings()
    store = store or build_default_store(settings)

    audit_trail = AuditTrail(store, clock=clock)
    session_store = SessionStore(
        store, clock=clock, ip_hash_salt=settings.IP_HASH_SALT, audit_trail=audit_trail
    )
    token_service = TokenService(
        session_store,
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        clock=clock,
        default_ttl=timedelta(seconds=settings.SESSION_TTL_SECONDS),
    )
    restriction_gate = RestrictionGate(
        store,
        cache=restriction_cache or build_restriction_cache(settings, clock),
        clock=clock,
        entity_limit=settings.FREE_PLAN_ENTITY_LIMIT,
        grace_period_days=settings.GRACE_PERIOD_DAYS,
        restricted_modules=settings.RESTRICTED_MODULES,
        usage_collection=settings.USAGE_ENTITY_COLLECTION,
    )

    return Services(
        settings=settings,
        store=store,
        session_store=session_store,
        token_service=token_service,
        restriction_gate=restriction_gate,
        audit_trail=audit_trail,
        clock=clock,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_session_store(request: Request) -> SessionStore:
    return get_services(request).session_store


def get_restriction_gate(request: Request) -> RestrictionGate:
    return get_services(request).restriction_gate


def get_audit_trail(request: Request) -> AuditTrail:
    return get_services(request).audit_trail
