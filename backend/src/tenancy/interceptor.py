"""Automatic tenant scoping for data access.

``TenantScopedCollection`` wraps one collection of a ``RecordStorePort`` and
is the only way application code should touch tenant data:

- Reads get ``tenant_id = current_tenant_id()`` merged into their criteria.
- Writes stamp the ambient tenant id on every document and are filtered by it.
- Any explicit tenant id that disagrees with the ambient one is rejected
  before the store is called, so nothing is persisted.
- Without an active tenant scope every operation raises MissingTenantContext.

Privileged cross-tenant aggregation (admin reporting) passes
``system_query=SystemQuery(...)`` to a read. System queries are logged and
audited on every use and are never accepted by write methods.

Example:
    courses = TenantScopedCollection(store, "courses", audit_trail=audit)

    with tenant_scope(session.tenant_id):
        await courses.insert_one({"name": "Piano 101"})
        active = await courses.find({"is_deleted": False})

    totals = await courses.count(
        {"is_deleted": False},
        system_query=SystemQuery(reason="monthly usage report", actor_id=admin.id),
    )
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from audit.schemas import AuditActor

from .context import current_tenant_id, get_tenant_id_or_none
from .errors import CrossTenantAccessAttempt, CrossTenantReadAttempt, CrossTenantWriteAttempt
from .ports import Criteria, Document, RecordStorePort, SortSpec

if TYPE_CHECKING:
    from audit.service import AuditTrail

logger = logging.getLogger(__name__)

SYSTEM_TENANT_ID = "system"


@dataclass(frozen=True)
class SystemQuery:
    """Explicit opt-out of tenant injection for a single read.

    Attributes:
        reason: Human readable justification, recorded in the audit trail
        actor_id: Who asked for the cross-tenant read
        actor_name: Display name of the actor
        actor_role: Role of the actor (normally an admin role)
    """
    reason: str
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_role: Optional[str] = None

    def __post_init__(self):
        if not self.reason or not self.reason.strip():
            raise ValueError("SystemQuery requires a reason")


class TenantScopedCollection:
    """Tenant-enforcing wrapper around one collection of a record store."""

    def __init__(
        self,
        store: RecordStorePort,
        collection: str,
        *,
        tenant_field: str = "tenant_id",
        audit_trail: Optional["AuditTrail"] = None,
    ):
        self.store = store
        self.collection = collection
        self.tenant_field = tenant_field
        self.audit_trail = audit_trail

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find(
        self,
        criteria: Optional[Criteria] = None,
        *,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
        system_query: Optional[SystemQuery] = None,
    ) -> List[Document]:
        scoped = await self._read_criteria(criteria, "find", system_query)
        return await self.store.find(self.collection, scoped, sort=sort, limit=limit, skip=skip)

    async def find_one(
        self,
        criteria: Optional[Criteria] = None,
        *,
        system_query: Optional[SystemQuery] = None,
    ) -> Optional[Document]:
        scoped = await self._read_criteria(criteria, "find_one", system_query)
        return await self.store.find_one(self.collection, scoped)

    async def count(
        self,
        criteria: Optional[Criteria] = None,
        *,
        system_query: Optional[SystemQuery] = None,
    ) -> int:
        scoped = await self._read_criteria(criteria, "count", system_query)
        return await self.store.count(self.collection, scoped)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_one(self, document: Document) -> Document:
        inserted = await self.insert_many([document])
        return inserted[0]

    async def insert_many(self, documents: Sequence[Document]) -> List[Document]:
        tenant_id = current_tenant_id()
        # Validate the whole batch first so a bad document persists nothing.
        stamped = [await self._stamp(doc, tenant_id, "insert") for doc in documents]
        if not stamped:
            return []
        return await self.store.insert_many(self.collection, stamped)

    async def update_one(self, criteria: Criteria, changes: Document) -> int:
        return await self._update(criteria, changes, multi=False)

    async def update_many(self, criteria: Criteria, changes: Document) -> int:
        return await self._update(criteria, changes, multi=True)

    async def delete_one(self, criteria: Criteria) -> int:
        scoped = await self._write_criteria(criteria, "delete")
        return await self.store.delete(self.collection, scoped, multi=False)

    async def delete_many(self, criteria: Criteria) -> int:
        scoped = await self._write_criteria(criteria, "delete")
        return await self.store.delete(self.collection, scoped, multi=True)

    async def upsert(
        self,
        criteria: Criteria,
        changes: Document,
        insert_defaults: Optional[Document] = None,
    ) -> Document:
        """Update-or-insert within the ambient tenant.

        The tenant id is part of the match criteria, so an existing row from
        another tenant is never matched, and any tenant id in ``changes`` or
        ``insert_defaults`` must equal the ambient one. An existing row's
        tenant id therefore can never change through this method.
        """
        scoped = await self._write_criteria(criteria, "upsert")
        tenant_id = scoped[self.tenant_field]
        safe_changes = await self._strip_tenant(changes, tenant_id, "upsert")
        defaults = await self._strip_tenant(insert_defaults or {}, tenant_id, "upsert")
        return await self.store.upsert(self.collection, scoped, safe_changes, defaults)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _update(self, criteria: Criteria, changes: Document, *, multi: bool) -> int:
        scoped = await self._write_criteria(criteria, "update")
        safe_changes = await self._strip_tenant(changes, scoped[self.tenant_field], "update")
        if not safe_changes:
            return 0
        return await self.store.update(self.collection, scoped, safe_changes, multi=multi)

    async def _read_criteria(
        self,
        criteria: Optional[Criteria],
        operation: str,
        system_query: Optional[SystemQuery],
    ) -> Criteria:
        scoped = dict(criteria or {})
        if system_query is not None:
            await self._record_system_query(operation, system_query)
            return scoped

        tenant_id = current_tenant_id()
        if self.tenant_field in scoped and scoped[self.tenant_field] != tenant_id:
            await self._reject(
                CrossTenantReadAttempt(self.collection, tenant_id, scoped[self.tenant_field], operation)
            )
        scoped[self.tenant_field] = tenant_id
        return scoped

    async def _write_criteria(self, criteria: Optional[Criteria], operation: str) -> Criteria:
        tenant_id = current_tenant_id()
        scoped = dict(criteria or {})
        if self.tenant_field in scoped and scoped[self.tenant_field] != tenant_id:
            await self._reject(
                CrossTenantWriteAttempt(self.collection, tenant_id, scoped[self.tenant_field], operation)
            )
        scoped[self.tenant_field] = tenant_id
        return scoped

    async def _stamp(self, document: Document, tenant_id: str, operation: str) -> Document:
        explicit = document.get(self.tenant_field)
        if explicit is not None and explicit != tenant_id:
            await self._reject(CrossTenantWriteAttempt(self.collection, tenant_id, explicit, operation))
        stamped = dict(document)
        stamped[self.tenant_field] = tenant_id
        return stamped

    async def _strip_tenant(self, changes: Document, tenant_id: str, operation: str) -> Document:
        if self.tenant_field in changes and changes[self.tenant_field] != tenant_id:
            await self._reject(
                CrossTenantWriteAttempt(self.collection, tenant_id, changes[self.tenant_field], operation)
            )
        return {key: value for key, value in changes.items() if key != self.tenant_field}

    async def _reject(self, exc: CrossTenantAccessAttempt) -> None:
        logger.warning(
            "Cross-tenant %s blocked on %s",
            exc.operation,
            self.collection,
            extra={
                "tenant_id": exc.ambient_tenant_id,
                "attempted_tenant_id": exc.attempted_tenant_id,
            },
        )
        if self.audit_trail is not None:
            action = (
                "SUSPICIOUS_CROSS_TENANT_WRITE"
                if isinstance(exc, CrossTenantWriteAttempt)
                else "SUSPICIOUS_CROSS_TENANT_READ"
            )
            await self.audit_trail.log_auth_event(
                action=action,
                actor=None,
                tenant_id=exc.ambient_tenant_id,
                details={
                    "collection": self.collection,
                    "operation": exc.operation,
                    "attempted_tenant_id": _stringify(exc.attempted_tenant_id),
                },
            )
        raise exc

    async def _record_system_query(self, operation: str, system_query: SystemQuery) -> None:
        logger.warning(
            "System query %s on %s: %s",
            operation,
            self.collection,
            system_query.reason,
            extra={"actor_id": system_query.actor_id},
        )
        if self.audit_trail is None:
            return

        actor = None
        if system_query.actor_id:
            actor = AuditActor(
                id=system_query.actor_id,
                name=system_query.actor_name,
                role=system_query.actor_role,
            )
        await self.audit_trail.log_auth_event(
            action="SYSTEM_QUERY",
            actor=actor,
            tenant_id=get_tenant_id_or_none() or SYSTEM_TENANT_ID,
            details={
                "collection": self.collection,
                "operation": operation,
                "reason": system_query.reason,
            },
        )


def _stringify(value: Any) -> Optional[str]:
    return None if value is None else str(value)
