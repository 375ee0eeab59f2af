"""Observability: structured logging and request correlation."""

from .logging_config import JSONFormatter, RequestIDFilter, TenantFilter, configure_logging, get_logger
from .middleware import RequestIDMiddleware
from .request_id import generate_request_id, get_request_id, request_id_scope, request_id_var

__all__ = [
    "configure_logging",
    "get_logger",
    "JSONFormatter",
    "RequestIDFilter",
    "TenantFilter",
    "request_id_var",
    "get_request_id",
    "generate_request_id",
    "request_id_scope",
    "RequestIDMiddleware",
]
