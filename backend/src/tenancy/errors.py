"""Tenant isolation error taxonomy."""

from typing import Optional


class TenantGuardError(Exception):
    """Base class for every error raised by the tenancy and session core."""


class MissingTenantContext(TenantGuardError):
    """Data access or current_tenant_id() was called outside any tenant scope.

    This is a programming error. The HTTP layer fails closed on it.
    """

    def __init__(self, message: str = "No tenant context is active for this call chain"):
        super().__init__(message)


class CrossTenantAccessAttempt(TenantGuardError):
    """A caller tried to touch rows belonging to a tenant other than the ambient one."""

    def __init__(
        self,
        collection: str,
        ambient_tenant_id: str,
        attempted_tenant_id: Optional[str],
        operation: str,
    ):
        self.collection = collection
        self.ambient_tenant_id = ambient_tenant_id
        self.attempted_tenant_id = attempted_tenant_id
        self.operation = operation
        super().__init__(
            f"{operation} on '{collection}' targeted tenant {attempted_tenant_id!r} "
            f"while the active tenant is {ambient_tenant_id!r}"
        )


class CrossTenantWriteAttempt(CrossTenantAccessAttempt):
    """Insert/update/delete/upsert carried a tenant id different from the context."""


class CrossTenantReadAttempt(CrossTenantAccessAttempt):
    """Read criteria named a tenant id different from the context."""
