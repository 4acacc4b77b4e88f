"""FastAPI exception handlers producing the control plane's JSON error bodies."""

from __future__ import annotations

from http import HTTPStatus
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

DEFAULT_ERRORS: Dict[int, str] = {
    status.HTTP_400_BAD_REQUEST: "Bad request",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: "Payload too large",
    status.HTTP_429_TOO_MANY_REQUESTS: "Too many requests",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal server error",
}


def _normalize_error(status_code: int, detail: Any) -> Dict[str, Any]:
    default_error = DEFAULT_ERRORS.get(status_code, DEFAULT_ERRORS[status.HTTP_500_INTERNAL_SERVER_ERROR])
    if isinstance(detail, dict):
        body = dict(detail)
        body.setdefault("error", default_error)
        return body
    if isinstance(detail, str) and detail:
        try:
            phrase = HTTPStatus(status_code).phrase
        except ValueError:
            phrase = ""
        if detail == phrase:
            return {"error": default_error}
        return {"error": default_error, "message": detail}
    return {"error": default_error}


def error_response(
    status_code: int, detail: Any = None, headers: Optional[Mapping[str, str]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_normalize_error(status_code, detail),
        headers=dict(headers) if headers else None,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, {"detail": {"errors": exc.errors()}})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, exc.detail, getattr(exc, "headers", None))


async def internal_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc, extra={"path": request.url.path})
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, {"message": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """Attach shared exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, internal_exception_handler)


__all__ = [
    "register_error_handlers",
    "error_response",
    "validation_exception_handler",
    "http_exception_handler",
    "internal_exception_handler",
]
