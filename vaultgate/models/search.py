"""Search-related models."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """Normalized hit returned by the search subprocess."""

    path: str = Field(..., description="Vault-relative note path")
    score: float = Field(0.0, description="Relevance score reported by the engine")
    snippet: str = Field("", description="Matching excerpt")
    title: str = Field("", description="Note title (falls back to the filename stem)")
    highlights: List[str] = Field(default_factory=list)


__all__ = ["SearchResult"]
