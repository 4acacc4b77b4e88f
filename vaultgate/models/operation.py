"""Operation models shared by the approval workflow and the audit trail."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MCPOperation(BaseModel):
    """A single tool invocation as seen by the approval guard and audit log."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field(..., description="Tool name")
    path: Optional[str] = Field(None, description="Path (or identifying argument) the tool acts on")
    action: Optional[str] = Field(None, description="Sub-action, e.g. write mode")
    timestamp: datetime = Field(default_factory=_utcnow)
    client_id: Optional[str] = Field(None, description="Remote address of the caller")


class ApprovalRequest(BaseModel):
    """Read-only view of a pending approval handed to consent surfaces."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Correlation id")
    operation: MCPOperation
    deadline: datetime = Field(..., description="When the request times out (denied)")


__all__ = ["MCPOperation", "ApprovalRequest"]
