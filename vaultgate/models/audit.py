"""Audit trail models."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AuditEventType = Literal["tool_call", "resource_read", "approval_request", "approval_response"]


class AuditEntry(BaseModel):
    """Immutable record of one security-relevant action."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    type: AuditEventType
    tool: Optional[str] = None
    path: Optional[str] = None
    client_id: Optional[str] = Field(None, alias="clientId")
    success: bool
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


__all__ = ["AuditEntry", "AuditEventType"]
