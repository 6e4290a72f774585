"""Data models for token-budgeted context windows."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from ctxgraph.nodes.models import ContextNode


class WindowOrder(str, Enum):
    """Order in which selected nodes are rendered."""

    ORIGINAL = "original"  # relative order of the candidate list
    RELEVANCE = "relevance"  # most relevant first


class WindowOptions(BaseModel):
    """Selection and rendering options for a context window."""

    min_relevance: float = 0.1
    order: WindowOrder = WindowOrder.ORIGINAL
    include_titles: bool = True
    include_metadata: bool = True
    include_summaries: bool = True
    add_separators: bool = True
    preserve_structure: bool = True  # False collapses runs of blank lines


class WindowMetrics(BaseModel):
    node_count: int = 0
    eligible_count: int = 0
    average_relevance: float = 0.0
    coverage: float = 0.0  # selected / eligible
    swaps: int = 0


class ContextWindow(BaseModel):
    """The rendered text block handed to a generation step."""

    query: str
    text: str = ""
    nodes: list[ContextNode] = Field(default_factory=list)
    relevance: dict[str, float] = Field(default_factory=dict)
    total_tokens: int = 0
    max_tokens: int = 0
    metrics: WindowMetrics = Field(default_factory=WindowMetrics)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def summary(self) -> str:
        """Human-readable summary of what's in the window."""
        used = (self.total_tokens / self.max_tokens * 100) if self.max_tokens else 0.0
        lines = [
            f"Context window for: {self.query}",
            f"Tokens: {self.total_tokens:,} / {self.max_tokens:,} ({used:.0f}%)",
            f"Nodes: {self.metrics.node_count} of {self.metrics.eligible_count} eligible "
            f"(coverage {self.metrics.coverage:.0%}, avg relevance {self.metrics.average_relevance:.2f})",
            "",
        ]
        for node in self.nodes:
            lines.append(
                f"  {node.id} ({node.chunk_type}) "
                f"score={self.relevance.get(node.id, 0.0):.2f} ~{node.token_count}tok"
            )
        return "\n".join(lines)
