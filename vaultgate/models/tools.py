"""Typed tool calls.

Every tool name maps to exactly one call model carrying its own argument
model. Raw ``{tool, arguments}`` payloads are resolved into one of these
variants once, at the request boundary, via ``TOOL_CALL_ADAPTER``.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from mcp.types import TextContent
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .task import Priority, TaskStatus

WriteMode = Literal["create", "replace", "append"]
SearchModeArg = Literal["hybrid", "semantic", "keyword"]

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class _Arguments(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class ReadNoteArgs(_Arguments):
    path: str
    include_metadata: bool = Field(False, alias="includeMetadata")


class WriteNoteArgs(_Arguments):
    path: str
    content: str
    mode: WriteMode = "replace"


class SearchVaultArgs(_Arguments):
    query: str = Field(..., min_length=1)
    mode: Optional[SearchModeArg] = None
    limit: Optional[int] = Field(None, ge=1, le=100)


class ListNotesArgs(_Arguments):
    folder: Optional[str] = ""
    recursive: bool = False
    include_metadata: bool = Field(False, alias="includeMetadata")


class ListTasksArgs(_Arguments):
    status: TaskStatus = "incomplete"
    overdue: bool = False
    due_today: bool = Field(False, alias="dueToday")
    limit: int = Field(50, ge=1)


class AddTaskArgs(_Arguments):
    description: str = Field(..., min_length=1)
    note_path: str = Field(..., alias="notePath")
    due_date: Optional[str] = Field(None, alias="dueDate", pattern=DATE_PATTERN)
    priority: Optional[Priority] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("description")
    @classmethod
    def _single_line_description(cls, value: str) -> str:
        if "\n" in value or "\r" in value:
            raise ValueError("description must be a single line")
        return value

    @field_validator("tags")
    @classmethod
    def _single_line_tags(cls, value: List[str]) -> List[str]:
        if any("\n" in tag or "\r" in tag for tag in value):
            raise ValueError("tags must not contain line breaks")
        return value


class CompleteTaskArgs(_Arguments):
    task_id: str = Field(..., alias="taskId", min_length=1)


class _ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    def target(self) -> Optional[str]:
        """Path (or identifying argument) recorded in audit entries."""
        return None

    def action(self) -> Optional[str]:
        return None


class ReadNoteCall(_ToolCall):
    tool: Literal["read_note"]
    arguments: ReadNoteArgs

    def target(self) -> Optional[str]:
        return self.arguments.path


class WriteNoteCall(_ToolCall):
    tool: Literal["write_note"]
    arguments: WriteNoteArgs

    def target(self) -> Optional[str]:
        return self.arguments.path

    def action(self) -> Optional[str]:
        return self.arguments.mode


class SearchVaultCall(_ToolCall):
    tool: Literal["search_vault"]
    arguments: SearchVaultArgs

    def action(self) -> Optional[str]:
        return self.arguments.mode


class ListNotesCall(_ToolCall):
    tool: Literal["list_notes"]
    arguments: ListNotesArgs = Field(default_factory=ListNotesArgs)

    def target(self) -> Optional[str]:
        return self.arguments.folder or None


class ListTasksCall(_ToolCall):
    tool: Literal["list_tasks"]
    arguments: ListTasksArgs = Field(default_factory=ListTasksArgs)


class AddTaskCall(_ToolCall):
    tool: Literal["add_task"]
    arguments: AddTaskArgs

    def target(self) -> Optional[str]:
        return self.arguments.note_path


class CompleteTaskCall(_ToolCall):
    tool: Literal["complete_task"]
    arguments: CompleteTaskArgs

    def target(self) -> Optional[str]:
        return self.arguments.task_id


ToolCall = Annotated[
    Union[
        ReadNoteCall,
        WriteNoteCall,
        SearchVaultCall,
        ListNotesCall,
        ListTasksCall,
        AddTaskCall,
        CompleteTaskCall,
    ],
    Field(discriminator="tool"),
]

TOOL_CALL_ADAPTER: TypeAdapter[Any] = TypeAdapter(ToolCall)

TOOL_NAMES = frozenset(
    {"read_note", "write_note", "search_vault", "list_notes", "list_tasks", "add_task", "complete_task"}
)


class ToolResponse(BaseModel):
    """MCP-style tool result envelope."""

    content: List[TextContent]
    is_error: bool = False

    @classmethod
    def json_text(cls, payload: Dict[str, Any], *, is_error: bool = False, indent: Optional[int] = 2) -> "ToolResponse":
        text = json.dumps(payload, indent=indent, default=str, ensure_ascii=False)
        return cls(content=[TextContent(type="text", text=text)], is_error=is_error)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "content": [item.model_dump(by_alias=True, exclude_none=True) for item in self.content]
        }
        if self.is_error:
            body["isError"] = True
        return body


__all__ = [
    "ReadNoteArgs",
    "WriteNoteArgs",
    "SearchVaultArgs",
    "ListNotesArgs",
    "ListTasksArgs",
    "AddTaskArgs",
    "CompleteTaskArgs",
    "ReadNoteCall",
    "WriteNoteCall",
    "SearchVaultCall",
    "ListNotesCall",
    "ListTasksCall",
    "AddTaskCall",
    "CompleteTaskCall",
    "ToolCall",
    "TOOL_CALL_ADAPTER",
    "TOOL_NAMES",
    "ToolResponse",
    "WriteMode",
]
