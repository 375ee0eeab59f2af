"""FastAPI dependencies for authentication and authorization.

The tenant context middleware resolves the session once per request and
stores the result on ``request.state``. These dependencies read it back.

Every authentication failure produces the same 401 body, whether the token
was forged, expired, unknown or revoked. Keep it that way: distinguishing
them would let a caller tell which sessions were revoked.

Usage:
    @router.get("/me")
    async def me(session: SessionContext = Depends(get_session_context)):
        return {"user_id": session.user_id}

    @router.get("/admin-only")
    async def admin(session: SessionContext = Depends(require_role(UserRole.ADMIN))):
        ...
"""

from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status

from .errors import NotAuthenticated
from .roles import UserRole, has_permission, parse_role
from .schemas import SessionContext


def not_authenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=NotAuthenticated.public_message,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_optional_session_context(request: Request) -> SessionContext | None:
    return getattr(request.state, "session_context", None)


def get_session_context(request: Request) -> SessionContext:
    """Return the live session of this request or answer 401."""
    context = get_optional_session_context(request)
    if context is None:
        raise not_authenticated()
    return context


def require_role(required_role: UserRole) -> Callable:
    """Create a dependency that enforces a minimum role.

    Raises:
        HTTPException 401: No live session
        HTTPException 403: Role insufficient
    """

    def role_dependency(session: SessionContext = Depends(get_session_context)) -> SessionContext:
        if not has_permission(parse_role(session.role), required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required role: {required_role.value}",
            )
        return session

    return role_dependency


# Type aliases for dependency injection
CurrentSession = Annotated[SessionContext, Depends(get_session_context)]
AdminSession = Annotated[SessionContext, Depends(require_role(UserRole.ADMIN))]
