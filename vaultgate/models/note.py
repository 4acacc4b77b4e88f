"""Note-related Pydantic models."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class NoteStat(BaseModel):
    """Filesystem facts about a note (timestamps in epoch milliseconds)."""

    size: int = Field(..., ge=0, description="File size in bytes")
    created: int = Field(..., description="Creation time (ms since epoch)")
    modified: int = Field(..., description="Last modification time (ms since epoch)")


class NoteMetadata(BaseModel):
    """Metadata returned by read_note when includeMetadata is set."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "path": "Projects/roadmap.md",
                "name": "roadmap.md",
                "size": 2048,
                "created": 1736500000000,
                "modified": 1736900000000,
                "frontmatter": {"status": "draft"},
                "tags": ["#planning"],
            }
        }
    )

    path: str
    name: str
    size: int = Field(..., ge=0)
    created: int
    modified: int
    frontmatter: Optional[Dict[str, Any]] = None
    tags: List[str] = Field(default_factory=list)


class NoteSummary(BaseModel):
    """Lightweight representation used for listings."""

    path: str
    name: str = Field(..., description="Filename without extension")
    size: Optional[int] = None
    created: Optional[int] = None
    modified: Optional[int] = None


__all__ = ["NoteStat", "NoteMetadata", "NoteSummary"]
