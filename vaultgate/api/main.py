"""FastAPI application factory."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from .. import __version__
from ..services.auth import SessionAuth
from ..services.config import AppConfig, get_config
from ..services.rate_limit import RateLimiter
from ..services.tool_executor import ToolExecutor
from .middleware import install_request_gate, register_error_handlers
from .routes import system, tools

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    *,
    auth: Optional[SessionAuth] = None,
    executor: Optional[ToolExecutor] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the control-plane application.

    Collaborators are attached to ``app.state`` so the owning server can swap
    settings or rotate the session token without rebuilding the app.
    """
    config = config or get_config()

    app = FastAPI(
        title="vault-gate",
        description="Local control plane exposing a notes vault to MCP agents",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.auth = auth or SessionAuth()
    app.state.executor = executor or ToolExecutor(config)
    app.state.rate_limiter = rate_limiter or RateLimiter(
        config.rate_limit_requests, config.rate_limit_window_seconds
    )

    register_error_handlers(app)
    install_request_gate(app)

    app.include_router(system.router, tags=["system"])
    app.include_router(tools.router, tags=["mcp"])
    return app


__all__ = ["create_app"]
