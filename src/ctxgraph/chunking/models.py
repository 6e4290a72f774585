"""Data models for semantic chunking."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ChunkType(str, Enum):
    """Structural subtype carried by every fragment."""

    CODE = "code"
    MARKDOWN = "markdown"
    WEB_CONTENT = "web_content"
    TEXT = "text"
    CONVERSATION_TURN = "conversation_turn"


class ContentKind(str, Enum):
    """Coarse classification of a whole document."""

    CODE = "code"
    MARKDOWN = "markdown"
    TEXT = "text"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BoundaryType(str, Enum):
    START = "start"
    PARAGRAPH = "paragraph"
    SENTENCE = "sentence"
    CODE_BLOCK_START = "code_block_start"
    CODE_BLOCK_END = "code_block_end"
    HEADER = "header"
    END = "end"


class BoundaryStrength(str, Enum):
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"

    @property
    def rank(self) -> int:
        return {"weak": 0, "medium": 1, "strong": 2}[self.value]


@dataclass(frozen=True)
class Boundary:
    """A position where content may be split."""

    position: int
    type: BoundaryType
    strength: BoundaryStrength

    @property
    def is_strong(self) -> bool:
        return self.strength == BoundaryStrength.STRONG


def _as_int(value: Any, default: int) -> int:
    """Coerce a config value to int, falling back to the default."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number)


class ChunkingStrategy(BaseModel):
    """Immutable configuration for a chunking call.

    Malformed values are normalized instead of rejected: negative sizes are
    clamped to zero, ``max_chunk_size`` is raised to at least
    ``min_chunk_size``, and non-numeric values fall back to the defaults.
    """

    model_config = ConfigDict(frozen=True)

    max_tokens: int = 4000  # per-turn / single-node threshold
    min_chunk_size: int = 100
    max_chunk_size: int = 8000
    overlap_tokens: int = 0
    respect_paragraphs: bool = True
    respect_code_blocks: bool = True
    respect_headers: bool = True

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        defaults = {
            "max_tokens": 4000,
            "min_chunk_size": 100,
            "max_chunk_size": 8000,
            "overlap_tokens": 0,
        }
        for key, default in defaults.items():
            if key in data:
                data[key] = max(0, _as_int(data[key], default))

        min_size = data.get("min_chunk_size", defaults["min_chunk_size"])
        max_size = data.get("max_chunk_size", defaults["max_chunk_size"])
        data["max_chunk_size"] = max(1, min_size, max_size)
        data["max_tokens"] = max(1, data.get("max_tokens", defaults["max_tokens"]))
        # Overlap can never consume a whole fragment
        overlap = data.get("overlap_tokens", 0)
        data["overlap_tokens"] = min(overlap, data["max_chunk_size"] // 2)
        return data


class ContentAnalysis(BaseModel):
    """Structural summary of a document computed before chunking."""

    kind: ContentKind = ContentKind.TEXT
    complexity: Complexity = Complexity.MEDIUM
    has_code: bool = False
    has_markdown: bool = False
    paragraph_count: int = 0
    sentence_count: int = 0
    word_count: int = 0
    code_block_count: int = 0
    header_count: int = 0


class Fragment(BaseModel):
    """A token-bounded slice of the original content."""

    content: str
    token_count: int
    chunk_type: ChunkType = ChunkType.TEXT
    index: int = 0
    total_chunks: int = 1
    start: int = 0  # character offsets into the trimmed source
    end: int = 0
    overlap_chars: int = 0  # leading characters repeated from the previous fragment
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChunkingResult(BaseModel):
    """Ordered fragments plus the analysis that produced them."""

    fragments: list[Fragment] = Field(default_factory=list)
    total_tokens: int = 0
    analysis: ContentAnalysis = Field(default_factory=ContentAnalysis)
    strategy: ChunkingStrategy = Field(default_factory=ChunkingStrategy)

    @property
    def count(self) -> int:
        return len(self.fragments)

    def summary(self) -> str:
        lines = [
            f"{self.count} fragments, ~{self.total_tokens:,} tokens",
            f"Content: {self.analysis.kind.value} ({self.analysis.complexity.value} complexity)",
        ]
        for fragment in self.fragments:
            preview = fragment.content[:60].replace("\n", " ")
            lines.append(
                f"  [{fragment.index}] {fragment.chunk_type.value} "
                f"~{fragment.token_count}tok  {preview}"
            )
        return "\n".join(lines)
