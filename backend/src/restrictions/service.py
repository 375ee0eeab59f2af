"""Plan restriction gate.

Free-tier tenants may keep writing until they exceed the usage limit, and
never during the grace period after signup:

    days_since_created = floor((now - account_created_at) / 1 day)
    in_grace           = days_since_created < GRACE_PERIOD_DAYS
    restricted         = plan == "free" and active_entity_count > FREE_PLAN_ENTITY_LIMIT
                         and not in_grace

Every write handler applies the gate with one line:

    block = await gate.assert_write_allowed(session.tenant_id, "attendance")
    if block:
        return block
"""

import logging
from datetime import timedelta
from typing import Iterable, Optional

from clock import Clock, ensure_aware, utc_now
from tenancy.context import tenant_scope
from tenancy.interceptor import TenantScopedCollection
from tenancy.ports import RecordStorePort

from .cache import InMemoryRestrictionCache, RestrictionCache
from .schemas import FREE_PLAN, RestrictionBlock, RestrictionStatus

logger = logging.getLogger(__name__)

ACCOUNT_COLLECTION = "tenant_accounts"
PAYMENT_COLLECTION = "payment_records"

DEFAULT_RESTRICTED_MODULES = frozenset({"payments", "attendance", "courses", "schedules"})


class RestrictionGate:
    """Computes, caches and enforces per-tenant plan restrictions."""

    def __init__(
        self,
        store: RecordStorePort,
        cache: Optional[RestrictionCache] = None,
        clock: Clock = utc_now,
        entity_limit: int = 14,
        grace_period_days: int = 14,
        restricted_modules: Iterable[str] = DEFAULT_RESTRICTED_MODULES,
        usage_collection: str = "students",
    ):
        self._accounts = TenantScopedCollection(store, ACCOUNT_COLLECTION)
        self._payments = TenantScopedCollection(store, PAYMENT_COLLECTION)
        self._usage = TenantScopedCollection(store, usage_collection)
        self._cache = cache or InMemoryRestrictionCache(clock=clock)
        self._clock = clock
        self.entity_limit = entity_limit
        self.grace_period_days = grace_period_days
        self.restricted_modules = frozenset(m.lower() for m in restricted_modules)

    async def get_restriction_status(self, tenant_id: str) -> RestrictionStatus:
        """Cached restriction status; recomputed on miss or after the TTL."""
        cached = await self._cache.get(tenant_id)
        if cached is not None:
            return cached

        status = await self._compute(tenant_id)
        await self._cache.set(tenant_id, status)
        return status

    async def assert_write_allowed(self, tenant_id: str, module: str) -> Optional[RestrictionBlock]:
        """Return a block payload if this write must be refused, else None.

        Never raises. If the status cannot be computed the write is allowed
        and the failure is logged.
        """
        module_name = getattr(module, "value", module)
        module_name = str(module_name).lower()
        if module_name not in self.restricted_modules:
            return None

        try:
            status = await self.get_restriction_status(tenant_id)
        except Exception:
            logger.exception("Restriction status unavailable; allowing write", extra={"tenant_id": tenant_id})
            return None

        if not status.restricted:
            return None

        logger.info(
            "Write blocked by plan restriction on %s",
            module_name,
            extra={"tenant_id": tenant_id},
        )
        return RestrictionBlock(
            plan=status.plan,
            active_entity_count=status.active_entity_count,
            module=module_name,
        )

    async def invalidate(self, tenant_id: str) -> None:
        """Forget the cached status, e.g. right after a plan purchase."""
        await self._cache.invalidate(tenant_id)

    async def _compute(self, tenant_id: str) -> RestrictionStatus:
        now = self._clock()
        with tenant_scope(tenant_id):
            account = await self._accounts.find_one()
            payment = await self._payments.find(
                {"start_date": {"$lte": now}, "end_date": {"$gte": now}},
                sort=[("end_date", -1)],
                limit=1,
            )
            active_entity_count = await self._usage.count({"is_deleted": {"$ne": True}})

        plan = str(payment[0]["plan"]).lower() if payment else FREE_PLAN

        account_created_at = None
        days_since_created = None
        if account is None:
            logger.warning("Tenant has no billing account; no grace period applies", extra={"tenant_id": tenant_id})
        else:
            account_created_at = ensure_aware(account["created_at"])
            days_since_created = (now - account_created_at) // timedelta(days=1)

        in_grace = days_since_created is not None and days_since_created < self.grace_period_days
        restricted = plan == FREE_PLAN and active_entity_count > self.entity_limit and not in_grace

        return RestrictionStatus(
            plan=plan,
            active_entity_count=active_entity_count,
            restricted=restricted,
            tenant_account_id=account.get("account_id") if account else None,
            account_created_at=account_created_at,
            days_since_created=days_since_created,
            computed_at=now,
        )
