"""Context graphs: similarity edges over context nodes."""

from ctxgraph.graph.builder import ContentGraphBuilder, GraphBuilder, radial_layout
from ctxgraph.graph.models import ContextGraph, EdgeMetadata, EdgeType, GraphEdge, GraphNode
from ctxgraph.graph.store import GraphStore, InMemoryDocumentStore, SQLiteDocumentStore
from ctxgraph.graph.updater import GraphUpdater

__all__ = [
    "GraphBuilder",
    "ContentGraphBuilder",
    "radial_layout",
    "ContextGraph",
    "EdgeMetadata",
    "EdgeType",
    "GraphEdge",
    "GraphNode",
    "GraphStore",
    "InMemoryDocumentStore",
    "SQLiteDocumentStore",
    "GraphUpdater",
]
