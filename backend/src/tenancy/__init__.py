"""Tenancy: ambient tenant context and tenant-isolated data access.

- ``tenant_scope`` / ``run_with_tenant_context`` bind a tenant to the
  current call chain (async-safe, via contextvars)
- ``TenantScopedCollection`` wraps a ``RecordStorePort`` and injects or
  verifies the tenant on every read and write
- Cross-tenant attempts raise and are answered with 404, not 403
"""

from .context import current_tenant_id, get_tenant_id_or_none, run_with_tenant_context, tenant_scope
from .errors import (
    CrossTenantAccessAttempt,
    CrossTenantReadAttempt,
    CrossTenantWriteAttempt,
    MissingTenantContext,
    TenantGuardError,
)

__all__ = [
    "tenant_scope",
    "run_with_tenant_context",
    "current_tenant_id",
    "get_tenant_id_or_none",
    "TenantGuardError",
    "MissingTenantContext",
    "CrossTenantAccessAttempt",
    "CrossTenantReadAttempt",
    "CrossTenantWriteAttempt",
]
