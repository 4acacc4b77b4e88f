"""Task models (Obsidian Tasks compatible)."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Priority = Literal["highest", "high", "medium", "low", "lowest"]
TaskStatus = Literal["incomplete", "complete", "all"]


class ParsedTask(BaseModel):
    """A task line parsed out of a note."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="'<note path>:<line number>'")
    description: str
    completed: bool
    due_date: Optional[str] = Field(None, alias="dueDate")
    scheduled_date: Optional[str] = Field(None, alias="scheduledDate")
    start_date: Optional[str] = Field(None, alias="startDate")
    done_date: Optional[str] = Field(None, alias="doneDate")
    priority: Optional[Priority] = None
    recurrence: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    file_path: str = Field(..., alias="filePath")
    line_number: int = Field(..., ge=1, alias="lineNumber")
    raw_line: str = Field(..., alias="rawLine")


class TaskData(BaseModel):
    """Fields used to format a new task line."""

    description: str = Field(..., min_length=1)
    due_date: Optional[str] = None
    scheduled_date: Optional[str] = None
    start_date: Optional[str] = None
    priority: Optional[Priority] = None
    recurrence: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class TaskQuery(BaseModel):
    """Filters for querying tasks across the vault."""

    status: TaskStatus = "incomplete"
    due_before: Optional[str] = None
    due_after: Optional[str] = None
    overdue: bool = False
    priority: Optional[Priority] = None
    tags: List[str] = Field(default_factory=list)
    in_note: Optional[str] = None
    limit: Optional[int] = Field(None, ge=0)


__all__ = ["ParsedTask", "TaskData", "TaskQuery", "Priority", "TaskStatus"]
