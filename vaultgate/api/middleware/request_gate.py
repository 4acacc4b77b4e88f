"""Outermost HTTP gate: origin headers, rate limiting, method and bearer checks.

Checks run in a fixed order and the first failure answers the request:
CORS preflight, per-client rate limit, method, authentication. Only then is
the request routed.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, Optional

from fastapi import FastAPI, Request, Response, status

from ...services.auth import UNAUTHORIZED_HINT, AuthError, SessionAuth
from ...services.rate_limit import RateLimiter
from .error_handlers import error_response

logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = (
    "http://localhost",
    "http://127.0.0.1",
    "https://localhost",
    "https://127.0.0.1",
    "app://obsidian.md",
)
ALLOWED_METHODS = frozenset({"GET", "POST"})
PUBLIC_ROUTES = frozenset({("GET", "/health"), ("POST", "/health"), ("GET", "/auth/token")})

CORS_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Allow-Credentials": "true",
}


def origin_allowed(origin: Optional[str]) -> bool:
    """True when ``origin`` is one of the local origins (optionally with a port or path)."""
    if not origin:
        return False
    for allowed in ALLOWED_ORIGINS:
        if origin == allowed or origin.startswith((allowed + ":", allowed + "/")):
            return True
    return False


def cors_headers(origin: Optional[str]) -> Dict[str, str]:
    headers = dict(CORS_HEADERS)
    if origin and origin_allowed(origin):
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def client_host(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def install_request_gate(app: FastAPI) -> None:
    """Register the gate on ``app``; collaborators are read from ``app.state``."""

    @app.middleware("http")
    async def request_gate(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        headers = cors_headers(request.headers.get("origin"))

        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)

        host = client_host(request)
        rate_limiter: RateLimiter = request.app.state.rate_limiter
        decision = rate_limiter.check(host)
        if not decision.allowed:
            logger.warning("Rate limit exceeded", extra={"client_id": host})
            return error_response(
                status.HTTP_429_TOO_MANY_REQUESTS,
                headers={**headers, "Retry-After": str(decision.retry_after)},
            )

        if request.method not in ALLOWED_METHODS:
            return error_response(status.HTTP_405_METHOD_NOT_ALLOWED, headers=headers)

        if (request.method, request.url.path) not in PUBLIC_ROUTES:
            auth: SessionAuth = request.app.state.auth
            try:
                auth.validate(request.headers.get("authorization"))
            except AuthError as exc:
                logger.info(
                    "Rejected unauthenticated request",
                    extra={"client_id": host, "path": request.url.path, "reason": exc.message},
                )
                return error_response(exc.status_code, {"hint": UNAUTHORIZED_HINT}, headers=headers)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled exception: %s", exc, extra={"path": request.url.path})
            response = error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, {"message": str(exc)})

        for key, value in headers.items():
            response.headers[key] = value
        return response


__all__ = ["install_request_gate", "cors_headers", "origin_allowed", "ALLOWED_ORIGINS"]
