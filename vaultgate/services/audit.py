"""In-memory audit trail for tool calls, resource reads and approval decisions."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
import json
import logging
from typing import Any, Deque, Dict, List, Optional

from ..models.audit import AuditEntry, AuditEventType
from .config import AppConfig, get_config

logger = logging.getLogger("vaultgate.audit")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLogger:
    """
    Append-only, bounded audit log.

    Entries live for the lifetime of the process; once the buffer holds
    ``audit_max_entries`` records the oldest are dropped first. Logging is a
    no-op while ``audit_logging`` is disabled.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()
        self._entries: Deque[AuditEntry] = deque(maxlen=self.config.audit_max_entries)

    def log(
        self,
        type: AuditEventType,
        *,
        success: bool,
        tool: Optional[str] = None,
        path: Optional[str] = None,
        client_id: Optional[str] = None,
        error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        """Stamp and append one entry; returns it, or None when auditing is off."""
        if not self.config.audit_logging:
            return None

        entry = AuditEntry(
            timestamp=_utcnow_iso(),
            type=type,
            tool=tool,
            path=path,
            client_id=client_id,
            success=success,
            error=error,
            details=details,
        )
        self._entries.append(entry)

        if self.config.debug_mode:
            logger.info("[audit] %s", json.dumps(entry.to_dict(), default=str))
        return entry

    def log_tool_call(
        self,
        tool: str,
        path: Optional[str],
        success: bool,
        error: Optional[str] = None,
        client_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        return self.log(
            "tool_call",
            tool=tool,
            path=path,
            client_id=client_id,
            success=success,
            error=error,
            details=details,
        )

    def log_resource_read(
        self,
        path: str,
        success: bool,
        error: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        return self.log("resource_read", path=path, client_id=client_id, success=success, error=error)

    def log_approval_request(
        self, tool: str, path: Optional[str], client_id: Optional[str] = None
    ) -> Optional[AuditEntry]:
        # success marks that the request was raised, not that it was granted
        return self.log("approval_request", tool=tool, path=path, client_id=client_id, success=True)

    def log_approval_response(
        self,
        tool: str,
        path: Optional[str],
        approved: bool,
        client_id: Optional[str] = None,
        outcome: Optional[str] = None,
    ) -> Optional[AuditEntry]:
        details: Dict[str, Any] = {"approved": approved}
        if outcome:
            details["outcome"] = outcome
        return self.log(
            "approval_response",
            tool=tool,
            path=path,
            client_id=client_id,
            success=approved,
            details=details,
        )

    def get_recent(self, count: int = 50) -> List[AuditEntry]:
        """Most recent entries, oldest first."""
        if count <= 0:
            return []
        return list(self._entries)[-count:]

    def get_for_tool(self, tool: str, count: int = 50) -> List[AuditEntry]:
        if count <= 0:
            return []
        return [entry for entry in self._entries if entry.tool == tool][-count:]

    def export(self) -> str:
        return json.dumps([entry.to_dict() for entry in self._entries], indent=2, default=str)

    def clear(self) -> None:
        self._entries.clear()

    def update_settings(self, config: AppConfig) -> None:
        self.config = config
        if self._entries.maxlen != config.audit_max_entries:
            self._entries = deque(self._entries, maxlen=config.audit_max_entries)

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["AuditLogger"]
