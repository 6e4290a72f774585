"""Context nodes: chunked content plus retrieval metadata."""

from ctxgraph.nodes.factory import ContextNodeFactory, extract_keywords, node_stats, summarize
from ctxgraph.nodes.models import ContextNode, NodeMetadata, SourceContent, SourceMetadata, StructuredAnalysis
from ctxgraph.nodes.repository import InMemoryNodeRepository, NodeSource

__all__ = [
    "ContextNodeFactory",
    "extract_keywords",
    "node_stats",
    "summarize",
    "ContextNode",
    "NodeMetadata",
    "SourceContent",
    "SourceMetadata",
    "StructuredAnalysis",
    "InMemoryNodeRepository",
    "NodeSource",
]
