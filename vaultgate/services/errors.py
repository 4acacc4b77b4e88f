"""Application-level errors surfaced to callers as ``isError`` tool results.

Protocol errors (bad auth, rate limiting, oversized bodies) never use these;
they are answered with HTTP status codes by the API layer.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ToolError(Exception):
    """Base class for failures a calling agent can inspect and recover from."""

    code = "tool_error"

    def __init__(self, message: str, *, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def as_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class UnknownToolError(ToolError):
    code = "unknown_tool"


class ToolArgumentError(ToolError):
    code = "invalid_arguments"


class PathValidationError(ToolError):
    code = "invalid_path"


class OperationDeniedError(ToolError):
    """The user (or the fail-closed timeout) refused a mutating operation."""

    code = "operation_denied"


class TaskError(ToolError):
    code = "task_error"


class SearchError(ToolError):
    code = "search_failed"


class SearchUnavailableError(SearchError):
    code = "search_unavailable"

    def __init__(self, message: str, instructions: str) -> None:
        super().__init__(message, details={"instructions": instructions})
        self.instructions = instructions


__all__ = [
    "ToolError",
    "UnknownToolError",
    "ToolArgumentError",
    "PathValidationError",
    "OperationDeniedError",
    "TaskError",
    "SearchError",
    "SearchUnavailableError",
]
