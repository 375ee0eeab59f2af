"""TenantGuard Backend - Main FastAPI Application

Multi-tenant session, isolation, plan restriction and audit core.

This module creates and configures the FastAPI application, including:
- Session and audit routers
- Middleware (request ID correlation, CORS, session resolution and tenant scoping)
- Exception handlers for the tenancy and authentication error taxonomy
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from audit.router import router as audit_router
from auth.errors import NotAuthenticated
from auth.router import router as auth_router
from dependencies import Services, build_services
from observability.logging_config import configure_logging
from observability.middleware import RequestIDMiddleware
from tenancy.errors import CrossTenantAccessAttempt, MissingTenantContext
from tenancy.middleware import TenantContextMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    - Startup: log the environment
    - Shutdown: wait for scheduled audit writes
    """
    services: Services = app.state.services
    logger.info("TenantGuard API starting up (environment=%s)", services.settings.ENVIRONMENT)

    yield

    logger.info("TenantGuard API shutting down...")
    await services.audit_trail.flush()


def _register_exception_handlers(app: FastAPI, expose_details: bool) -> None:

    @app.exception_handler(NotAuthenticated)
    async def not_authenticated_handler(request: Request, exc: NotAuthenticated) -> JSONResponse:
        # Same body for every reason; the reason is logged only
        logger.info("Not authenticated on %s %s: %s", request.method, request.url.path, exc.reason)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": NotAuthenticated.public_message},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(CrossTenantAccessAttempt)
    async def cross_tenant_handler(request: Request, exc: CrossTenantAccessAttempt) -> JSONResponse:
        # 404, not 403: do not confirm that the resource exists elsewhere
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not found"})

    @app.exception_handler(MissingTenantContext)
    async def missing_tenant_handler(request: Request, exc: MissingTenantContext) -> JSONResponse:
        logger.error(
            "Data access without tenant context on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        content = {
            "error": "missing_tenant_context",
            "message": "An unexpected error occurred. Please try again later.",
        }
        if expose_details:
            content["details"] = str(exc)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors with field-level details."""
        logger.warning(f"Validation error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        """Logs the full error but returns a generic message to prevent information leakage."""
        logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "database_error",
                "message": "A database error occurred. Please try again later.",
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Application factory.

    Args:
        services: Pre-built services (tests pass an in-memory store and a
            frozen clock); built from settings when omitted
    """
    services = services or build_services()
    settings = services.settings
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    app = FastAPI(
        title="TenantGuard API",
        description="Multi-tenant session, isolation and audit core",
        version="0.1.0",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
        openapi_url=None if settings.is_production else "/openapi.json",
        lifespan=lifespan,
    )
    app.state.services = services

    # Middleware: the last one added runs first.
    # Request ID wraps everything so every log line carries it.
    app.add_middleware(TenantContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in (settings.CORS_ORIGINS or "").split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    _register_exception_handlers(app, expose_details=not settings.is_production)

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {
            "name": "TenantGuard API",
            "version": "0.1.0",
            "status": "running",
            "docs": None if settings.is_production else "/docs",
        }

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, Any]:
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        log_config=None,  # keep our structured logging
    )
