"""Data models for source content and context nodes."""

from __future__ import annotations

import math
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SourceMetadata(BaseModel):
    """Declared signals attached to a piece of content by its author."""

    complexity: str | None = None  # "low" | "medium" | "high"
    urgency: str | None = None
    importance: str | None = None
    language: str | None = None
    framework: str | None = None


class StructuredAnalysis(BaseModel):
    """Extracted structure for a piece of content (topics, entities, links)."""

    topics: list[str] = Field(default_factory=list)
    entities: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    implements: list[str] = Field(default_factory=list)
    references: list[str] = Field(default_factory=list)

    def terms(self) -> set[str]:
        """All descriptive terms, lowercased."""
        return {t.lower() for t in (*self.topics, *self.entities, *self.keywords)}


class SourceContent(BaseModel):
    """A whole document handed in by the ingestion layer."""

    id: str
    title: str = ""
    content: str = ""
    type: str = "note"  # code, documentation, research, conversation, task, meeting, ...
    tags: list[str] = Field(default_factory=list)
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)
    analysis: StructuredAnalysis = Field(default_factory=StructuredAnalysis)
    embedding: list[float] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class NodeMetadata(BaseModel):
    """Where a node came from within its parent content."""

    chunk_index: int = 0
    total_chunks: int = 1
    original_content_id: str = ""
    chunk_type: str = "text"
    turn: int | None = None
    role: str | None = None


class ContextNode(BaseModel):
    """A chunk of original content plus derived retrieval metadata.

    Nodes are immutable; `with_embedding` and `with_importance` return
    refreshed copies.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    token_count: int = 0
    importance: float = 0.5
    embedding: list[float] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)  # most frequent first
    summary: str = ""
    title: str | None = None
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)
    timestamp: datetime = Field(default_factory=utcnow)
    parent_id: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @field_validator("importance", mode="before")
    @classmethod
    def _clamp_importance(cls, value: object) -> float:
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.5
        if not math.isfinite(number):
            return 0.5
        return min(1.0, max(0.0, number))

    @property
    def chunk_type(self) -> str:
        return self.metadata.chunk_type

    def with_embedding(self, embedding: list[float]) -> ContextNode:
        return self.model_copy(update={"embedding": list(embedding)})

    def with_importance(self, importance: float) -> ContextNode:
        # Round-trip through validation so the clamp applies
        return ContextNode.model_validate({**self.model_dump(), "importance": importance})
