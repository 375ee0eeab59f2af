"""Middleware that resolves the session and binds the tenant context.

For every request it:
1. Reads the session token (cookie, then Bearer header)
2. Resolves it through ``TokenService.extract_session_from_jwt``
3. Stores ``session_context`` and ``session_claims`` on ``request.state``
4. Runs the rest of the request inside ``tenant_scope(tenant_id)``

Requests without a live session continue with no tenant bound; endpoints
that need one reject them via ``get_session_context`` (401), and any data
access that slips through fails with MissingTenantContext.

The tenant is taken only from the validated session, never from headers,
query parameters or the request body.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from auth.cookies import StarletteCookieTransport

from .context import tenant_scope


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Attach the live session to request.state and bind its tenant.

    Usage:
        app.add_middleware(TenantContextMiddleware)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.session_context = None
        request.state.session_claims = None

        services = request.app.state.services
        transport = StarletteCookieTransport(
            request,
            cookie_name=services.settings.SESSION_COOKIE_NAME,
            secure=services.settings.SESSION_COOKIE_SECURE,
        )
        token = transport.read_token()
        if not token:
            return await call_next(request)

        claims, context = await services.token_service.extract_session_from_jwt(token)
        if context is None:
            return await call_next(request)

        request.state.session_context = context
        request.state.session_claims = claims
        with tenant_scope(context.tenant_id):
            return await call_next(request)
