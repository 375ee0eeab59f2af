"""Request ID and access logging middleware."""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger
from .request_id import generate_request_id, request_id_scope

logger = get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate or propagate X-Request-ID and log each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()

        with request_id_scope(request_id):
            start_time = time.time()
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    f"Request failed: {e}",
                    extra={
                        "method": request.method,
                        "path": request.url.path,
                        "duration_ms": round((time.time() - start_time) * 1000, 2),
                    },
                    exc_info=True,
                )
                raise

            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                },
            )
            response.headers["X-Request-ID"] = request_id
            return response
