"""Control server: owns the collaborators and the loopback uvicorn listener."""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
import logging
import os
import socket
from typing import Iterator, Optional

import uvicorn

from .api.main import create_app
from .services.audit import AuditLogger
from .services.auth import SessionAuth
from .services.config import AppConfig, get_config
from .services.consent import ConsentSurface, build_consent_surface
from .services.operation_guard import OperationGuard
from .services.path_validator import PathValidator
from .services.rate_limit import RateLimiter
from .services.search import SearchClient
from .services.tasks import TaskStore
from .services.tool_executor import ToolExecutor
from .services.vault import VaultService

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
STARTUP_POLL_SECONDS = 0.01
GRACEFUL_SHUTDOWN_SECONDS = 5


class ServerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class _EmbeddedUvicornServer(uvicorn.Server):
    """uvicorn server that leaves process signal handling to the host."""

    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def bind_loopback(port: int) -> socket.socket:
    """Bind a TCP socket on 127.0.0.1; raises OSError when the port is taken."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        if os.name != "nt":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((LOOPBACK_HOST, port))
    except OSError:
        sock.close()
        raise
    return sock


class ControlServer:
    """
    Loopback HTTP control plane for one vault.

    Lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED. A new
    session token is issued on every start and revoked on stop.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        consent: Optional[ConsentSurface] = None,
        search: Optional[SearchClient] = None,
    ) -> None:
        self.config = config or get_config()
        self._consent_injected = consent is not None

        self.audit = AuditLogger(self.config)
        self.guard = OperationGuard(
            self.config,
            audit=self.audit,
            consent=consent or build_consent_surface(self.config),
        )
        self.validator = PathValidator(self.config.vault_root)
        self.vault = VaultService(self.config)
        self.search = search or SearchClient(self.config)
        self.tasks = TaskStore(self.vault, self.config)
        self.executor = ToolExecutor(
            self.config,
            validator=self.validator,
            audit=self.audit,
            guard=self.guard,
            vault=self.vault,
            search=self.search,
            tasks=self.tasks,
        )
        self.auth = SessionAuth()
        self.rate_limiter = RateLimiter(self.config.rate_limit_requests, self.config.rate_limit_window_seconds)
        self.app = create_app(
            self.config, auth=self.auth, executor=self.executor, rate_limiter=self.rate_limiter
        )

        self._state = ServerState.STOPPED
        self._lock = asyncio.Lock()
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional["asyncio.Task[None]"] = None
        self._socket: Optional[socket.socket] = None
        self._port: Optional[int] = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ServerState.RUNNING

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def token(self) -> Optional[str]:
        return self.auth.token

    @property
    def url(self) -> Optional[str]:
        return f"http://{LOOPBACK_HOST}:{self._port}" if self._port is not None else None

    async def start(self) -> None:
        """Bind the listener and serve until ``stop()``; no-op when already running."""
        async with self._lock:
            if self._state is ServerState.RUNNING:
                return
            self._state = ServerState.STARTING
            try:
                await self._start_listener()
            except BaseException:
                await self._teardown()
                raise
            self._state = ServerState.RUNNING

        logger.info(
            "Control server listening",
            extra={"url": self.url, "vault": self.config.vault_name},
        )
        logger.debug("Session token issued", extra={"token_prefix": (self.auth.token or "")[:6]})

    async def stop(self) -> None:
        """Deny pending approvals, then shut the listener down. Idempotent."""
        async with self._lock:
            if self._state is ServerState.STOPPED:
                return
            self._state = ServerState.STOPPING
            cancelled = self.guard.cancel_all()
            logger.info("Stopping control server", extra={"cancelled_approvals": cancelled})
            await self._teardown()
        logger.info("Control server stopped")

    def update_settings(self, config: AppConfig) -> None:
        """Propagate a new configuration to every component."""
        previous = self.config
        self.config = config
        self.audit.update_settings(config)
        self.guard.update_settings(config)
        self.search.update_settings(config)
        self.executor.update_settings(config)
        self.rate_limiter.update_limits(config.rate_limit_requests, config.rate_limit_window_seconds)
        self.app.state.config = config
        if not self._consent_injected and config.consent_mode != previous.consent_mode:
            self.guard.consent = build_consent_surface(config)
        if config.port != previous.port and self.is_running:
            logger.warning("Port change takes effect after restart", extra={"port": config.port})

    async def __aenter__(self) -> "ControlServer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    async def _start_listener(self) -> None:
        self.auth.rotate()
        self.search.initialize()
        self._socket = bind_loopback(self.config.port)

        uvicorn_config = uvicorn.Config(
            self.app,
            log_level="debug" if self.config.debug_mode else "info",
            access_log=self.config.debug_mode,
            lifespan="off",
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_SECONDS,
        )
        self._server = _EmbeddedUvicornServer(uvicorn_config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[self._socket]))

        while not self._server.started:
            if self._serve_task.done():
                # Surfaces the startup failure, if the task raised one.
                await self._serve_task
                raise RuntimeError("Control server exited during startup")
            await asyncio.sleep(STARTUP_POLL_SECONDS)

        self._port = self._socket.getsockname()[1]

    async def _teardown(self) -> None:
        try:
            if self._server is not None:
                self._server.should_exit = True
            if self._serve_task is not None:
                await self._serve_task
        finally:
            if self._socket is not None:
                self._socket.close()
            self.auth.revoke()
            self._server = None
            self._serve_task = None
            self._socket = None
            self._port = None
            self._state = ServerState.STOPPED


__all__ = ["ControlServer", "ServerState", "bind_loopback", "LOOPBACK_HOST"]
