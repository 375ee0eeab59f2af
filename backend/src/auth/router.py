"""Session endpoints.

Users list and revoke their own sessions; admins list and revoke the
sessions of any user in their own tenant. Every endpoint here requires a
live session, and every revocation is written to the audit trail.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from audit.schemas import AuditActor
from audit.service import AuditTrail, client_ip_from_headers, user_agent_from_headers
from dependencies import get_audit_trail, get_session_store

from .cookies import StarletteCookieTransport
from .dependencies import AdminSession, CurrentSession
from .schemas import (
    AdminRevokeAction,
    AdminRevokeRequest,
    RevokeResponse,
    SessionContext,
    SessionListResponse,
    SessionSummary,
)
from .session_store import SessionStore

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _actor(session: SessionContext) -> AuditActor:
    return AuditActor(id=session.user_id, name=session.name, role=session.role)


def _audit_auth_event(
    audit_trail: AuditTrail,
    request: Request,
    session: SessionContext,
    action: str,
    details: dict,
) -> None:
    client_host = request.client.host if request.client else None
    audit_trail.schedule_auth_event(
        action=action,
        actor=_actor(session),
        tenant_id=session.tenant_id,
        ip_address=client_ip_from_headers(request.headers, fallback=client_host),
        user_agent=user_agent_from_headers(request.headers),
        details=details,
    )


def _clear_cookie(request: Request, response: Response) -> None:
    settings = request.app.state.services.settings
    StarletteCookieTransport(
        request,
        response,
        cookie_name=settings.SESSION_COOKIE_NAME,
        secure=settings.SESSION_COOKIE_SECURE,
    ).delete_cookie()


@router.get("/sessions", response_model=SessionListResponse)
async def list_my_sessions(
    session: CurrentSession,
    session_store: SessionStore = Depends(get_session_store),
) -> SessionListResponse:
    """Active sessions of the current user, most recently active first."""
    records = await session_store.list_active_sessions(session.user_id, session.tenant_id)
    return SessionListResponse(
        sessions=[SessionSummary.from_record(r, current_token_id=session.token_id) for r in records],
        total_sessions=len(records),
    )


@router.delete("/sessions/{token_id}", response_model=RevokeResponse)
async def revoke_my_session(
    token_id: str,
    request: Request,
    response: Response,
    session: CurrentSession,
    session_store: SessionStore = Depends(get_session_store),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> RevokeResponse:
    """Revoke one of the current user's own sessions.

    Sessions of other users (or other tenants) are reported as not found.
    """
    record = await session_store.lookup(token_id, session.tenant_id)
    if record is None or record.user_id != session.user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    revoked = await session_store.revoke_session(token_id, session.tenant_id, reason="logout", revoked_by=session.user_id)
    if token_id == session.token_id:
        _clear_cookie(request, response)

    _audit_auth_event(audit_trail, request, session, "SESSION_REVOKED", {"token_id": token_id})
    return RevokeResponse(revoked_count=1 if revoked else 0)


@router.post("/logout", response_model=RevokeResponse)
async def logout(
    request: Request,
    response: Response,
    session: CurrentSession,
    session_store: SessionStore = Depends(get_session_store),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> RevokeResponse:
    """Revoke the current session and clear the session cookie."""
    revoked = await session_store.revoke_session(session.token_id, session.tenant_id, reason="logout")
    _clear_cookie(request, response)
    _audit_auth_event(audit_trail, request, session, "LOGOUT", {"token_id": session.token_id})
    return RevokeResponse(revoked_count=1 if revoked else 0, message="Logged out")


@router.post("/logout-all", response_model=RevokeResponse)
async def logout_everywhere_else(
    request: Request,
    session: CurrentSession,
    session_store: SessionStore = Depends(get_session_store),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> RevokeResponse:
    """Revoke every other session of the current user; the current one stays live."""
    revoked_count = await session_store.revoke_all_user_sessions(
        session.user_id,
        session.tenant_id,
        reason="logout_all",
        except_token_id=session.token_id,
        revoked_by=session.user_id,
    )
    _audit_auth_event(audit_trail, request, session, "LOGOUT_ALL", {"revoked_count": revoked_count})
    return RevokeResponse(revoked_count=revoked_count, message=f"Revoked {revoked_count} other session(s)")


@router.get("/admin/sessions", response_model=SessionListResponse)
async def admin_list_sessions(
    session: AdminSession,
    user_id: str = Query(..., min_length=1, description="User whose sessions to list"),
    session_store: SessionStore = Depends(get_session_store),
) -> SessionListResponse:
    """Active sessions of any user in the admin's tenant (ADMIN only)."""
    records = await session_store.list_active_sessions(user_id, session.tenant_id)
    return SessionListResponse(
        sessions=[SessionSummary.from_record(r, current_token_id=session.token_id) for r in records],
        total_sessions=len(records),
    )


@router.delete("/admin/sessions", response_model=RevokeResponse)
async def admin_revoke_sessions(
    body: AdminRevokeRequest,
    request: Request,
    session: AdminSession,
    session_store: SessionStore = Depends(get_session_store),
    audit_trail: AuditTrail = Depends(get_audit_trail),
) -> RevokeResponse:
    """Revoke one session or all sessions of a user in the admin's tenant (ADMIN only).

    Targets outside the admin's tenant are never touched; they simply
    produce ``revoked_count == 0``.
    """
    if body.action == AdminRevokeAction.REVOKE_SESSION:
        revoked = await session_store.revoke_session(
            body.token_id, session.tenant_id, reason="admin_revoke", revoked_by=session.user_id
        )
        revoked_count = 1 if revoked else 0
        details = {"action": body.action.value, "token_id": body.token_id}
    else:
        revoked_count = await session_store.revoke_all_user_sessions(
            body.user_id, session.tenant_id, reason="admin_revoke_all", revoked_by=session.user_id
        )
        details = {"action": body.action.value, "target_user_id": body.user_id}

    details["revoked_count"] = revoked_count
    _audit_auth_event(audit_trail, request, session, "ADMIN_SESSION_REVOKE", details)
    return RevokeResponse(revoked_count=revoked_count, message=f"Successfully revoked {revoked_count} session(s)")
