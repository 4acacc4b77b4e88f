"""Approval workflow for mutating tool calls.

A mutating call is parked in a pending map under a fresh correlation id until
one of three things happens: the user decides, the timer fires, or the guard
is cancelled. Whichever pops the entry first owns the resolution; everything
after that is a no-op.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union
from uuid import uuid4

from ..models.operation import ApprovalRequest, MCPOperation
from .audit import AuditLogger
from .config import AppConfig, get_config
from .consent import ConsentSurface, StaticConsent
from .errors import OperationDeniedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

APPROVAL_TOOLS = frozenset({"write_note", "add_task", "complete_task"})


class ApprovalOutcome(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


DENIAL_ERRORS = {
    ApprovalOutcome.DENIED: ("operation_denied", "Operation denied by user"),
    ApprovalOutcome.TIMED_OUT: ("approval_timeout", "Operation denied: approval timed out"),
    ApprovalOutcome.CANCELLED: ("approval_cancelled", "Operation denied: server is shutting down"),
}


@dataclass
class PendingApproval:
    id: str
    operation: MCPOperation
    future: "asyncio.Future[ApprovalOutcome]"
    deadline: datetime
    timer: Optional[asyncio.TimerHandle] = None
    surface_task: Optional["asyncio.Task[None]"] = None

    def view(self) -> ApprovalRequest:
        return ApprovalRequest(id=self.id, operation=self.operation, deadline=self.deadline)


class OperationGuard:
    """Decides whether a mutation needs consent and blocks it until it has one."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        audit: AuditLogger | None = None,
        consent: ConsentSurface | None = None,
    ) -> None:
        self.config = config or get_config()
        self.audit = audit or AuditLogger(self.config)
        self.consent = consent or StaticConsent(approve=False)
        self._pending: Dict[str, PendingApproval] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def requires_approval(self, operation: MCPOperation) -> bool:
        return self.config.require_approval and operation.tool in APPROVAL_TOOLS

    async def request_approval(self, operation: MCPOperation) -> bool:
        """Ask for consent; True only on an explicit approval."""
        outcome = await self._await_decision(operation)
        return outcome is ApprovalOutcome.APPROVED

    async def execute_with_approval(
        self, operation: MCPOperation, action: Callable[[], Union[T, Awaitable[T]]]
    ) -> T:
        """
        Run ``action`` once the operation is allowed.

        Raises OperationDeniedError (without ever calling ``action``) when the
        user denies, the request times out, or the guard is cancelled.
        """
        if self.requires_approval(operation):
            outcome = await self._await_decision(operation)
            if outcome is not ApprovalOutcome.APPROVED:
                code, message = DENIAL_ERRORS[outcome]
                raise OperationDeniedError(message, code=code)

        result = action()
        if inspect.isawaitable(result):
            result = await result
        return result

    def respond(self, approval_id: str, approved: bool) -> bool:
        """Resolve a pending approval. Returns False for unknown or already-resolved ids."""
        outcome = ApprovalOutcome.APPROVED if approved else ApprovalOutcome.DENIED
        return self._resolve(approval_id, outcome)

    def respond_threadsafe(self, approval_id: str, approved: bool) -> None:
        """``respond`` for consent surfaces that decide on another thread."""
        if self._loop is None:
            raise RuntimeError("No approval has been requested yet")
        self._loop.call_soon_threadsafe(self.respond, approval_id, approved)

    def pending(self) -> List[ApprovalRequest]:
        return [entry.view() for entry in self._pending.values()]

    def cancel_all(self) -> int:
        """Deny every pending approval. Returns how many were cancelled."""
        cancelled = 0
        for approval_id in list(self._pending):
            if self._resolve(approval_id, ApprovalOutcome.CANCELLED):
                cancelled += 1
        if cancelled:
            logger.info("Cancelled pending approvals", extra={"count": cancelled})
        return cancelled

    def update_settings(self, config: AppConfig) -> None:
        self.config = config

    async def _await_decision(self, operation: MCPOperation) -> ApprovalOutcome:
        loop = asyncio.get_running_loop()
        self._loop = loop

        approval_id = uuid4().hex
        timeout = self.config.approval_timeout_seconds
        pending = PendingApproval(
            id=approval_id,
            operation=operation,
            future=loop.create_future(),
            deadline=datetime.now(timezone.utc) + timedelta(seconds=timeout),
        )
        self._pending[approval_id] = pending
        self.audit.log_approval_request(operation.tool, operation.path, client_id=operation.client_id)
        logger.info(
            "Approval requested",
            extra={"approval_id": approval_id, "tool": operation.tool, "path": operation.path},
        )

        pending.timer = loop.call_later(timeout, self._resolve, approval_id, ApprovalOutcome.TIMED_OUT)
        pending.surface_task = loop.create_task(self._present(pending))

        try:
            return await pending.future
        finally:
            # The waiting caller went away (e.g. the request was cancelled): fail closed.
            if approval_id in self._pending:
                self._resolve(approval_id, ApprovalOutcome.CANCELLED)

    async def _present(self, pending: PendingApproval) -> None:
        try:
            approved = await self.consent.present(pending.view())
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Consent surface failed; denying", extra={"approval_id": pending.id})
            approved = False
        self._resolve(pending.id, ApprovalOutcome.APPROVED if approved else ApprovalOutcome.DENIED)

    def _resolve(self, approval_id: str, outcome: ApprovalOutcome) -> bool:
        pending = self._pending.pop(approval_id, None)
        if pending is None:
            return False

        if pending.timer is not None:
            pending.timer.cancel()
        task = pending.surface_task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        operation = pending.operation
        approved = outcome is ApprovalOutcome.APPROVED
        self.audit.log_approval_response(
            operation.tool,
            operation.path,
            approved,
            client_id=operation.client_id,
            outcome=outcome.value,
        )
        logger.info(
            "Approval resolved",
            extra={"approval_id": approval_id, "tool": operation.tool, "outcome": outcome.value},
        )
        if outcome in (ApprovalOutcome.TIMED_OUT, ApprovalOutcome.CANCELLED):
            self.consent.notify(f"{DENIAL_ERRORS[outcome][1]} ({operation.tool})")

        if not pending.future.done():
            pending.future.set_result(outcome)
        return True


def _current_task() -> Optional["asyncio.Task[Any]"]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = [
    "OperationGuard",
    "ApprovalOutcome",
    "PendingApproval",
    "APPROVAL_TOOLS",
]
