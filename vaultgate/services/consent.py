"""Consent surfaces: where approval requests are shown to the user."""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
import sys
from typing import Awaitable, Callable, Optional, TextIO, Union

from ..models.operation import ApprovalRequest
from .config import AppConfig

logger = logging.getLogger(__name__)

Decision = Union[bool, Awaitable[bool]]


def describe_operation(request: ApprovalRequest) -> str:
    """Human-readable summary of what is being asked for."""
    operation = request.operation
    tool_name = operation.tool.replace("_", " ").title()
    lines = [f"Tool: {tool_name}"]
    if operation.path:
        lines.append(f"Path: {operation.path}")
    if operation.action:
        lines.append(f"Action: {operation.action}")
    if operation.client_id:
        lines.append(f"Client: {operation.client_id}")
    return "\n".join(lines)


class ConsentSurface(abc.ABC):
    """Interactive channel that asks the user to allow or deny an operation."""

    @abc.abstractmethod
    async def present(self, request: ApprovalRequest) -> bool:
        """
        Ask for a decision. May never return; the guard's own timeout is
        authoritative and cancels this coroutine when it fires.
        """

    def notify(self, message: str) -> None:
        """Show a short notice (denials, timeouts)."""
        logger.warning(message)


class StaticConsent(ConsentSurface):
    """Always answers the same way (headless deployments and automation)."""

    def __init__(self, approve: bool) -> None:
        self.approve = approve

    async def present(self, request: ApprovalRequest) -> bool:
        logger.info(
            "Approval %s automatically",
            "granted" if self.approve else "denied",
            extra={"approval_id": request.id, "tool": request.operation.tool},
        )
        return self.approve


class CallbackConsent(ConsentSurface):
    """Delegates the decision to a sync or async callable."""

    def __init__(self, callback: Callable[[ApprovalRequest], Decision]) -> None:
        self.callback = callback

    async def present(self, request: ApprovalRequest) -> bool:
        decision = self.callback(request)
        if inspect.isawaitable(decision):
            decision = await decision
        return bool(decision)


class TerminalConsent(ConsentSurface):
    """
    Prompts on the controlling terminal.

    Prompts are serialized. A read still in flight when its prompt times out
    is reused by the next prompt; a line that arrived after its prompt
    expired is discarded rather than applied to a different request.
    """

    def __init__(self, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> None:
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stderr
        self._lock = asyncio.Lock()
        self._pending_line: Optional[asyncio.Future[str]] = None

    async def present(self, request: ApprovalRequest) -> bool:
        if not self.stdin.isatty():
            logger.warning("No terminal attached; denying approval %s", request.id)
            return False

        async with self._lock:
            self.stdout.write(
                "\n[vault-gate] An agent is requesting permission:\n"
                f"{describe_operation(request)}\n"
                "Allow this operation? [y/N] "
            )
            self.stdout.flush()

            if self._pending_line is None or self._pending_line.done():
                self._pending_line = asyncio.ensure_future(asyncio.to_thread(self.stdin.readline))
            line = await asyncio.shield(self._pending_line)
            self._pending_line = None
            return line.strip().lower() in {"y", "yes"}

    def notify(self, message: str) -> None:
        self.stdout.write(f"[vault-gate] {message}\n")
        self.stdout.flush()


def build_consent_surface(config: AppConfig) -> ConsentSurface:
    """Pick the consent surface named by ``consent_mode``."""
    if config.consent_mode == "allow":
        logger.warning("CONSENT_MODE=allow: mutating tools are approved without asking")
        return StaticConsent(approve=True)
    if config.consent_mode == "deny":
        return StaticConsent(approve=False)
    return TerminalConsent()


__all__ = [
    "ConsentSurface",
    "StaticConsent",
    "CallbackConsent",
    "TerminalConsent",
    "build_consent_surface",
    "describe_operation",
]
