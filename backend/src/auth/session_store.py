"""Server-side session store.

Persists one row per issued JWT so sessions can be listed and revoked even
though the tokens themselves are stateless. Every tenant-bound operation runs
inside ``tenant_scope(tenant_id)`` and goes through the tenant interceptor.

Revocation is a single conditional update (``is_revoked: False -> True``),
so concurrent revoke attempts are safe: exactly one reports success and the
rest see "already revoked".
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from clock import Clock, utc_now
from tenancy.context import tenant_scope
from tenancy.interceptor import SYSTEM_TENANT_ID, TenantScopedCollection
from tenancy.ports import RecordStorePort

from .device import DeviceMeta, hash_ip_address
from .schemas import SessionRecord

if TYPE_CHECKING:
    from audit.service import AuditTrail

logger = logging.getLogger(__name__)

SESSION_COLLECTION = "sessions"


class SessionStore:
    """Create, look up, list and revoke sessions."""

    def __init__(
        self,
        store: RecordStorePort,
        clock: Clock = utc_now,
        ip_hash_salt: str = "",
        audit_trail: Optional["AuditTrail"] = None,
    ):
        self._store = store
        self._sessions = TenantScopedCollection(store, SESSION_COLLECTION)
        self._clock = clock
        self._ip_hash_salt = ip_hash_salt
        self._audit_trail = audit_trail

    async def create(
        self,
        token_id: str,
        user_id: str,
        tenant_id: str,
        issued_at: datetime,
        expires_at: datetime,
        device_meta: Optional[DeviceMeta] = None,
    ) -> SessionRecord:
        """Persist a new active session keyed by ``token_id``."""
        device = device_meta or DeviceMeta()
        with tenant_scope(tenant_id):
            stored = await self._sessions.insert_one({
                "token_id": token_id,
                "user_id": user_id,
                "issued_at": issued_at,
                "expires_at": expires_at,
                "last_active_at": issued_at,
                "device_type": device.device_type,
                "browser": device.browser,
                "os": device.os,
                "user_agent": device.user_agent,
                "ip_hash": hash_ip_address(device.ip_address, self._ip_hash_salt),
                "is_revoked": False,
            })
        return SessionRecord(**stored)

    async def lookup(self, token_id: str, tenant_id: str) -> Optional[SessionRecord]:
        """Find a session by token id within a tenant, revoked or not."""
        with tenant_scope(tenant_id):
            found = await self._sessions.find_one({"token_id": token_id})
        return SessionRecord(**found) if found else None

    async def touch(self, token_id: str, tenant_id: str) -> bool:
        """Bump last_active_at on a live session."""
        with tenant_scope(tenant_id):
            updated = await self._sessions.update_one(
                {"token_id": token_id, "is_revoked": False},
                {"last_active_at": self._clock()},
            )
        return updated == 1

    async def revoke_session(
        self,
        token_id: str,
        tenant_id: str,
        reason: str = "logout",
        revoked_by: Optional[str] = None,
    ) -> bool:
        """Revoke one session.

        Returns:
            bool: True if this call revoked it; False if it was already
            revoked or does not exist in this tenant
        """
        with tenant_scope(tenant_id):
            updated = await self._sessions.update_one(
                {"token_id": token_id, "is_revoked": False},
                self._revocation(reason, revoked_by),
            )
        if updated:
            logger.info("Session revoked (%s)", reason, extra={"tenant_id": tenant_id})
        return updated == 1

    async def revoke_all_user_sessions(
        self,
        user_id: str,
        tenant_id: str,
        reason: str = "logout_all",
        except_token_id: Optional[str] = None,
        revoked_by: Optional[str] = None,
    ) -> int:
        """Revoke every live session of a user within a tenant.

        Args:
            except_token_id: Keep this session (usually the caller's own)

        Returns:
            int: Number of sessions this call revoked
        """
        criteria = {"user_id": user_id, "is_revoked": False}
        if except_token_id:
            criteria["token_id"] = {"$ne": except_token_id}

        with tenant_scope(tenant_id):
            revoked = await self._sessions.update_many(criteria, self._revocation(reason, revoked_by))
        logger.info(
            "Revoked %d sessions for user (%s)",
            revoked,
            reason,
            extra={"tenant_id": tenant_id, "user_id": user_id},
        )
        return revoked

    async def list_active_sessions(self, user_id: str, tenant_id: str) -> List[SessionRecord]:
        """Non-revoked, unexpired sessions of a user, most recently active first."""
        with tenant_scope(tenant_id):
            found = await self._sessions.find(
                {"user_id": user_id, "is_revoked": False, "expires_at": {"$gt": self._clock()}},
                sort=[("last_active_at", -1)],
            )
        return [SessionRecord(**doc) for doc in found]

    async def cleanup_expired(self, before: Optional[datetime] = None) -> int:
        """Delete sessions that expired before ``before`` (default: now), across all tenants.

        Maintenance job only. Goes to the raw store: the tenant interceptor
        rejects cross-tenant writes. The run is recorded as a system query.
        """
        cutoff = before or self._clock()
        deleted = await self._store.delete(SESSION_COLLECTION, {"expires_at": {"$lt": cutoff}})
        logger.warning("Expired session cleanup removed %d sessions", deleted)
        if self._audit_trail is not None:
            await self._audit_trail.log_auth_event(
                action="SYSTEM_QUERY",
                actor=None,
                tenant_id=SYSTEM_TENANT_ID,
                details={
                    "collection": SESSION_COLLECTION,
                    "operation": "delete",
                    "reason": "expired session cleanup",
                    "cutoff": cutoff.isoformat(),
                    "deleted": deleted,
                },
            )
        return deleted

    def _revocation(self, reason: str, revoked_by: Optional[str]) -> dict:
        return {
            "is_revoked": True,
            "revoked_at": self._clock(),
            "revoked_reason": reason,
            "revoked_by": revoked_by,
        }
