"""Audit trail for security and entity-mutation events.

This service provides a centralized interface for creating immutable audit log
entries. Every helper builds a normalized ``AuditEnvelope`` and appends it to
the ``audit_logs`` collection under the entry's own tenant scope.

Audit writes never affect the operation that triggered them: persistence
failures are caught and logged here and never propagate. Callers that do not
want to wait for the write use the ``schedule_*`` variants.

Audit Events:
- Entity mutations: CREATE, UPDATE (with field diff), DELETE
- Auth: LOGIN, LOGOUT, LOGOUT_ALL, SESSION_REVOKED, ADMIN_SESSION_REVOKE
- Security: SYSTEM_QUERY, SUSPICIOUS_CROSS_TENANT_WRITE, SUSPICIOUS_CROSS_TENANT_READ
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Dict, List, Mapping, Optional, Sequence, Set, Tuple, Union

from clock import Clock, ensure_aware, utc_now
from tenancy.context import tenant_scope
from tenancy.interceptor import TenantScopedCollection
from tenancy.ports import RecordStorePort

from .schemas import AuditAction, AuditActor, AuditEnvelope, AuditModule, FieldChange

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = "audit_logs"

ModuleName = Union[AuditModule, str]


def _value(module: ModuleName) -> str:
    return module.value if isinstance(module, AuditModule) else module


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


def diff_fields(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    fields: Optional[Sequence[str]] = None,
) -> List[FieldChange]:
    """Build the ordered field diff between two versions of an entity.

    Args:
        before: Entity state before the update
        after: Entity state after the update (or the update payload)
        fields: Restrict and order the comparison; defaults to ``after``'s keys

    Returns:
        list[FieldChange]: One entry per field whose value changed
    """
    keys = list(fields) if fields is not None else list(after.keys())
    return [
        FieldChange(field=key, old_value=_to_text(before.get(key)), new_value=_to_text(after.get(key)))
        for key in keys
        if before.get(key) != after.get(key)
    ]


def client_ip_from_headers(headers: Mapping[str, str], fallback: Optional[str] = None) -> Optional[str]:
    """Extract the client IP, honouring proxies.

    Uses the first hop of X-Forwarded-For, then X-Real-IP, then ``fallback``.
    """
    forwarded_for = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = headers.get("x-real-ip") or headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return fallback


def user_agent_from_headers(headers: Mapping[str, str]) -> Optional[str]:
    return headers.get("user-agent") or headers.get("User-Agent")


class AuditTrail:
    """Non-blocking, failure-isolated audit writer."""

    def __init__(self, store: RecordStorePort, clock: Clock = utc_now):
        self._entries = TenantScopedCollection(store, AUDIT_COLLECTION)
        self._clock = clock
        self._pending: Set[asyncio.Task] = set()

    async def record(self, envelope: AuditEnvelope) -> bool:
        """Persist one envelope. Returns False (after logging) on failure."""
        try:
            with tenant_scope(envelope.tenant_id):
                await self._entries.insert_one(envelope.to_document())
            return True
        except Exception:
            logger.exception(
                "Failed to persist audit entry %s/%s",
                envelope.module,
                envelope.action,
                extra={"tenant_id": envelope.tenant_id},
            )
            return False

    async def log_entity_create(
        self,
        module: ModuleName,
        entity_id: str,
        entity_name: Optional[str],
        actor: Optional[AuditActor],
        tenant_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._log(
            module, AuditAction.CREATE.value, tenant_id, actor, ip_address, user_agent,
            entity_id=entity_id, entity_name=entity_name, details=details,
        )

    async def log_entity_update(
        self,
        module: ModuleName,
        entity_id: str,
        entity_name: Optional[str],
        changes: Sequence[FieldChange],
        actor: Optional[AuditActor],
        tenant_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Record an update. An empty diff records nothing."""
        if not changes:
            return
        await self._log(
            module, AuditAction.UPDATE.value, tenant_id, actor, ip_address, user_agent,
            entity_id=entity_id, entity_name=entity_name, changes=list(changes),
        )

    async def log_entity_delete(
        self,
        module: ModuleName,
        entity_id: str,
        entity_name: Optional[str],
        actor: Optional[AuditActor],
        tenant_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._log(
            module, AuditAction.DELETE.value, tenant_id, actor, ip_address, user_agent,
            entity_id=entity_id, entity_name=entity_name, details=details,
        )

    async def log_auth_event(
        self,
        action: str,
        actor: Optional[AuditActor],
        tenant_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        await self._log(AuditModule.AUTH, action, tenant_id, actor, ip_address, user_agent, details=details)

    async def _log(
        self,
        module: ModuleName,
        action: str,
        tenant_id: str,
        actor: Optional[AuditActor],
        ip_address: Optional[str],
        user_agent: Optional[str],
        **fields: Any,
    ) -> None:
        try:
            envelope = AuditEnvelope(
                tenant_id=tenant_id,
                module=_value(module),
                action=action,
                timestamp=self._clock(),
                actor=actor,
                ip_address=ip_address,
                user_agent=user_agent,
                **fields,
            )
        except Exception:
            logger.exception("Could not build audit entry %s/%s", _value(module), action)
            return
        await self.record(envelope)

    # ------------------------------------------------------------------
    # Fire-and-forget
    # ------------------------------------------------------------------

    def schedule(self, write: Awaitable[None]) -> asyncio.Task:
        """Run an audit write in the background.

        The task inherits the caller's context. It is kept referenced until it
        finishes so it cannot be garbage collected mid-flight.
        """
        task = asyncio.ensure_future(write)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def schedule_entity_create(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        return self.schedule(self.log_entity_create(*args, **kwargs))

    def schedule_entity_update(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        return self.schedule(self.log_entity_update(*args, **kwargs))

    def schedule_entity_delete(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        return self.schedule(self.log_entity_delete(*args, **kwargs))

    def schedule_auth_event(self, *args: Any, **kwargs: Any) -> asyncio.Task:
        return self.schedule(self.log_auth_event(*args, **kwargs))

    async def flush(self) -> None:
        """Wait for every scheduled audit write (shutdown hook and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(
        self,
        tenant_id: str,
        module: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """One page of a tenant's audit entries, newest first, plus the total match count."""
        criteria: Dict[str, Any] = {}
        if module:
            criteria["module"] = module
        if action:
            criteria["action"] = action
        window: Dict[str, Any] = {}
        if start_date:
            window["$gte"] = ensure_aware(start_date)
        if end_date:
            window["$lte"] = ensure_aware(end_date)
        if window:
            criteria["timestamp"] = window

        with tenant_scope(tenant_id):
            total = await self._entries.count(criteria)
            entries = await self._entries.find(
                criteria,
                sort=[("timestamp", -1)],
                limit=per_page,
                skip=(page - 1) * per_page,
            )
        return entries, total
