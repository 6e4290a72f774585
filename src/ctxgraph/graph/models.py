"""Data models for context graphs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

import networkx as nx
from pydantic import BaseModel, Field

from ctxgraph.nodes.models import ContextNode, utcnow


class EdgeType(str, Enum):
    """Relationship carried by an edge."""

    SIMILAR = "similar"
    RELATED = "related"
    IMPLEMENTS = "implements"
    DEPENDS_ON = "depends_on"
    REFERENCES = "references"


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class GraphNode(BaseModel):
    """Display projection of a ContextNode. Not used by search."""

    id: str
    content_id: str | None = None
    position: Position = Field(default_factory=Position)
    width: float = 120.0
    height: float = 80.0
    label: str = ""


class EdgeMetadata(BaseModel):
    """Extra evidence recorded by the content-level builder."""

    similarity_type: str = "low"  # high | medium | low
    relationship_strength: str = "weak"  # strong | moderate | weak
    common_topics: list[str] = Field(default_factory=list)
    temporal_proximity: float = 0.0
    semantic_overlap: float = 0.0
    dependency_depth: float = 0.0
    relationship_confidence: float = 0.0


class GraphEdge(BaseModel):
    """Undirected weighted edge; endpoints are stored in canonical order."""

    id: str
    source: str
    target: str
    type: EdgeType = EdgeType.RELATED
    weight: float = 0.0
    label: str = ""
    metadata: EdgeMetadata | None = None

    @classmethod
    def between(
        cls,
        a: str,
        b: str,
        weight: float,
        type: EdgeType = EdgeType.RELATED,
        metadata: EdgeMetadata | None = None,
    ) -> GraphEdge:
        """Build an edge with canonical endpoint order so (a, b) == (b, a)."""
        source, target = sorted((a, b))
        weight = min(1.0, max(0.0, weight))
        return cls(
            id=f"{source}-{target}",
            source=source,
            target=target,
            type=type,
            weight=weight,
            label=f"{round(weight * 100)}%",
            metadata=metadata,
        )


class ContextGraph(BaseModel):
    """The node + edge structure persisted for one scope key."""

    scope_key: str
    nodes: list[ContextNode] = Field(default_factory=list)
    display_nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)
    layout: str = "radial"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def node(self, node_id: str) -> ContextNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_networkx(self) -> nx.Graph:
        """Undirected view for traversal. Edges to unknown nodes are dropped."""
        G = nx.Graph()
        for node in self.nodes:
            G.add_node(node.id, node=node)
        for edge in self.edges:
            if edge.source == edge.target:
                continue
            if edge.source not in G or edge.target not in G:
                continue
            G.add_edge(edge.source, edge.target, id=edge.id, type=edge.type.value, weight=edge.weight)
        return G

    def stats(self) -> dict:
        G = self.to_networkx()
        edge_types: dict[str, int] = {}
        for edge in self.edges:
            edge_types[edge.type.value] = edge_types.get(edge.type.value, 0) + 1
        return {
            "scope": self.scope_key,
            "total_nodes": G.number_of_nodes(),
            "total_edges": G.number_of_edges(),
            "components": nx.number_connected_components(G) if len(G) else 0,
            "density": nx.density(G) if len(G) > 1 else 0.0,
            "total_tokens": sum(n.token_count for n in self.nodes),
            "edge_types": edge_types,
        }


@dataclass
class SimilarityGroup:
    """Transient bucket of node indices compared only against one centroid."""

    centroid_index: int
    member_indices: list[int] = field(default_factory=list)
