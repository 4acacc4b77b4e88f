"""Pydantic models for data validation and serialization."""

from .audit import AuditEntry, AuditEventType
from .auth import HealthResponse, TokenResponse
from .note import NoteMetadata, NoteStat, NoteSummary
from .operation import ApprovalRequest, MCPOperation
from .search import SearchResult
from .task import ParsedTask, TaskData, TaskQuery
from .tools import TOOL_CALL_ADAPTER, TOOL_NAMES, ToolCall, ToolResponse

__all__ = [
    "AuditEntry",
    "AuditEventType",
    "HealthResponse",
    "TokenResponse",
    "NoteMetadata",
    "NoteStat",
    "NoteSummary",
    "MCPOperation",
    "ApprovalRequest",
    "SearchResult",
    "ParsedTask",
    "TaskData",
    "TaskQuery",
    "TOOL_CALL_ADAPTER",
    "TOOL_NAMES",
    "ToolCall",
    "ToolResponse",
]
