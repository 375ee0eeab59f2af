"""Audit log query endpoints (ADMIN only).

All endpoints in this router are read-only. Audit logs are immutable and
cannot be created, updated, or deleted through the API.

Admins see only their own tenant's entries and can filter by:
- Module (courses, payments, auth, ...)
- Action (CREATE, UPDATE, DELETE, LOGOUT, ADMIN_SESSION_REVOKE, ...)
- Date range (start_date, end_date)
- Pagination (page, per_page)
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from auth.dependencies import AdminSession
from dependencies import get_audit_trail

from .schemas import AuditLogListResponse, AuditLogResponse
from .service import AuditTrail

router = APIRouter(prefix="/audit", tags=["Audit Logs"])


@router.get(
    "",
    response_model=AuditLogListResponse,
    summary="Query audit logs (ADMIN only)",
    description="Query audit logs with filtering and pagination. Admins see only their tenant's entries.",
)
async def query_audit_logs(
    session: AdminSession,
    audit_trail: AuditTrail = Depends(get_audit_trail),
    module: Optional[str] = Query(None, description="Filter by module (e.g., courses, auth)"),
    action: Optional[str] = Query(None, description="Filter by action (e.g., UPDATE, LOGOUT)"),
    start_date: Optional[datetime] = Query(None, description="Minimum timestamp (ISO 8601)"),
    end_date: Optional[datetime] = Query(None, description="Maximum timestamp (ISO 8601)"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    per_page: int = Query(50, ge=1, le=100, description="Entries per page (max 100)"),
) -> AuditLogListResponse:
    """Newest first. Example: GET /audit?module=courses&action=UPDATE&page=1"""
    entries, total = await audit_trail.query(
        session.tenant_id,
        module=module,
        action=action,
        start_date=start_date,
        end_date=end_date,
        page=page,
        per_page=per_page,
    )
    return AuditLogListResponse(
        entries=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        page=page,
        per_page=per_page,
    )
