"""FastAPI middleware for request gating and error handling."""

from .error_handlers import (
    error_response,
    http_exception_handler,
    internal_exception_handler,
    register_error_handlers,
    validation_exception_handler,
)
from .request_gate import cors_headers, install_request_gate, origin_allowed

__all__ = [
    "install_request_gate",
    "cors_headers",
    "origin_allowed",
    "error_response",
    "register_error_handlers",
    "validation_exception_handler",
    "http_exception_handler",
    "internal_exception_handler",
]
