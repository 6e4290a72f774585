"""Builds context graphs without full pairwise comparison.

Two builders share one edge model:

- ``GraphBuilder`` works on ContextNodes. Nodes are bucketed by a cheap
  signature (first keyword, else chunk type) and each member is compared
  only with its bucket's centroid; consecutive centroids are then chained
  so the graph stays connected. Cost is O(N log N) plus O(N) comparisons.
- ``ContentGraphBuilder`` works on whole SourceContent objects with a
  heavier five-factor score and explicit relationship typing. It is
  pairwise, so use it for unchunked document sets of modest size.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import timedelta

from ctxgraph.graph.models import (
    EdgeMetadata,
    EdgeType,
    GraphEdge,
    GraphNode,
    Position,
    SimilarityGroup,
)
from ctxgraph.graph.similarity import clamp, cosine_similarity, jaccard, node_similarity, overlap_ratio
from ctxgraph.nodes.factory import extract_keywords
from ctxgraph.nodes.models import ContextNode, SourceContent, as_utc

logger = logging.getLogger("ctxgraph.graph")

LAYOUT_RADIUS = 200.0


def radial_layout(count: int, radius: float = LAYOUT_RADIUS) -> list[Position]:
    """Evenly spaced points on a circle; cosmetic only."""
    positions = []
    for i in range(count):
        angle = (i / count) * 2 * math.pi
        positions.append(Position(x=math.cos(angle) * radius, y=math.sin(angle) * radius))
    return positions


class EdgeSet:
    """Collects edges, dropping self loops and reversed duplicates."""

    def __init__(self) -> None:
        self._edges: dict[str, GraphEdge] = {}

    def add(self, edge: GraphEdge) -> bool:
        if edge.source == edge.target or edge.id in self._edges:
            return False
        self._edges[edge.id] = edge
        return True

    def __len__(self) -> int:
        return len(self._edges)

    def to_list(self) -> list[GraphEdge]:
        return list(self._edges.values())


class GraphBuilder:
    """Signature-bucketed similarity graph over ContextNodes."""

    def __init__(
        self,
        edge_threshold: float = 0.2,
        similar_threshold: float = 0.7,
        link_threshold: float = 0.1,
        radius: float = LAYOUT_RADIUS,
    ) -> None:
        self.edge_threshold = edge_threshold
        self.similar_threshold = similar_threshold
        self.link_threshold = link_threshold
        self.radius = radius

    def build(self, nodes: list[ContextNode]) -> tuple[list[GraphNode], list[GraphEdge]]:
        """Return display nodes and deduplicated edges for `nodes`."""
        display = self.display_nodes(nodes)
        groups = self.group_by_signature(nodes)

        edges = EdgeSet()
        self._edges_within_groups(nodes, groups, edges)
        self._connect_groups(nodes, groups, edges)

        logger.info(
            f"Built graph: {len(nodes)} nodes, {len(groups)} buckets, {len(edges)} edges"
        )
        return display, edges.to_list()

    def display_nodes(self, nodes: list[ContextNode]) -> list[GraphNode]:
        positions = radial_layout(len(nodes), self.radius)
        return [
            GraphNode(
                id=node.id,
                content_id=node.parent_id or node.metadata.original_content_id or None,
                position=pos,
                label=node.summary or node.id,
            )
            for node, pos in zip(nodes, positions)
        ]

    @staticmethod
    def signature(node: ContextNode) -> str:
        return node.keywords[0] if node.keywords else node.chunk_type

    def group_by_signature(self, nodes: list[ContextNode]) -> list[SimilarityGroup]:
        """Bucket node indices by signature, buckets ordered by signature."""
        keyed = sorted(range(len(nodes)), key=lambda i: (self.signature(nodes[i]), i))
        groups: list[SimilarityGroup] = []
        for i in keyed:
            sig = self.signature(nodes[i])
            if groups and self.signature(nodes[groups[-1].centroid_index]) == sig:
                groups[-1].member_indices.append(i)
            else:
                groups.append(SimilarityGroup(centroid_index=i, member_indices=[i]))
        return groups

    def _edge_type(self, weight: float) -> EdgeType:
        return EdgeType.SIMILAR if weight > self.similar_threshold else EdgeType.RELATED

    def _edges_within_groups(
        self, nodes: list[ContextNode], groups: list[SimilarityGroup], edges: EdgeSet
    ) -> None:
        for group in groups:
            centroid = nodes[group.centroid_index]
            for idx in group.member_indices:
                if idx == group.centroid_index:
                    continue
                weight = node_similarity(centroid, nodes[idx])
                if weight > self.edge_threshold:
                    edges.add(
                        GraphEdge.between(centroid.id, nodes[idx].id, weight, self._edge_type(weight))
                    )

    def _connect_groups(
        self, nodes: list[ContextNode], groups: list[SimilarityGroup], edges: EdgeSet
    ) -> None:
        for left, right in zip(groups, groups[1:]):
            a = nodes[left.centroid_index]
            b = nodes[right.centroid_index]
            weight = node_similarity(a, b)
            if weight > self.link_threshold:
                edges.add(GraphEdge.between(a.id, b.id, weight, self._edge_type(weight)))


# ----------------------------------------------------------------------
# Content-level builder
# ----------------------------------------------------------------------

CONTENT_WEIGHTS = {
    "embedding": 0.4,
    "tags": 0.2,
    "type": 0.1,
    "keywords": 0.15,
    "analysis": 0.15,
}
TEMPORAL_WINDOW = timedelta(days=30)

# (type of one side, type of the other) -> relationship
TYPE_RELATIONS = {
    ("code", "documentation"): EdgeType.IMPLEMENTS,
    ("task", "code"): EdgeType.DEPENDS_ON,
    ("meeting", "task"): EdgeType.REFERENCES,
}


def _mentions(names: list[str], other: SourceContent) -> bool:
    """True if any declared name points at `other` by id or title."""
    targets = {other.id.lower()}
    if other.title:
        targets.add(other.title.lower())
    return any(name.lower() in targets for name in names)


def _title_in(content: SourceContent, other: SourceContent) -> bool:
    title = other.title.strip().lower()
    if len(title) <= 3:
        return False
    return re.search(rf"\b{re.escape(title)}\b", content.content.lower()) is not None


class ContentGraphBuilder:
    """Pairwise five-factor graph over whole documents."""

    def __init__(
        self,
        edge_threshold: float = 0.2,
        similar_threshold: float = 0.7,
        radius: float = LAYOUT_RADIUS,
    ) -> None:
        self.edge_threshold = edge_threshold
        self.similar_threshold = similar_threshold
        self.radius = radius

    def build(self, contents: list[SourceContent]) -> tuple[list[GraphNode], list[GraphEdge]]:
        positions = radial_layout(len(contents), self.radius)
        display = [
            GraphNode(id=c.id, content_id=c.id, position=pos, label=c.title or c.id)
            for c, pos in zip(contents, positions)
        ]

        keywords = [set(extract_keywords(c.content, 10)) for c in contents]
        edges = EdgeSet()
        for i in range(len(contents)):
            for j in range(i + 1, len(contents)):
                a, b = contents[i], contents[j]
                factors = self.factors(a, b, keywords[i], keywords[j])
                weight = self.combine(factors)
                if weight <= self.edge_threshold:
                    continue
                edge_type = self.relationship(a, b) or (
                    EdgeType.SIMILAR if weight > self.similar_threshold else EdgeType.RELATED
                )
                edges.add(
                    GraphEdge.between(
                        a.id, b.id, weight, edge_type, self.edge_metadata(a, b, weight, factors)
                    )
                )

        logger.info(f"Built content graph: {len(contents)} documents, {len(edges)} edges")
        return display, edges.to_list()

    @staticmethod
    def factors(
        a: SourceContent,
        b: SourceContent,
        a_keywords: set[str] | None = None,
        b_keywords: set[str] | None = None,
    ) -> dict[str, float]:
        if a_keywords is None:
            a_keywords = set(extract_keywords(a.content, 10))
        if b_keywords is None:
            b_keywords = set(extract_keywords(b.content, 10))
        return {
            "embedding": cosine_similarity(a.embedding, b.embedding),
            "tags": jaccard((t.lower() for t in a.tags), (t.lower() for t in b.tags)),
            "type": 1.0 if a.type == b.type else 0.0,
            "keywords": overlap_ratio(a_keywords, b_keywords),
            "analysis": jaccard(a.analysis.terms(), b.analysis.terms()),
        }

    @staticmethod
    def combine(factors: dict[str, float]) -> float:
        return clamp(sum(CONTENT_WEIGHTS[name] * value for name, value in factors.items()))

    def similarity(self, a: SourceContent, b: SourceContent) -> float:
        return self.combine(self.factors(a, b))

    @staticmethod
    def relationship(a: SourceContent, b: SourceContent) -> EdgeType | None:
        """Explicit relationship between two documents, if any."""
        if _mentions(a.analysis.implements, b) or _mentions(b.analysis.implements, a):
            return EdgeType.IMPLEMENTS
        if _mentions(a.analysis.depends_on, b) or _mentions(b.analysis.depends_on, a):
            return EdgeType.DEPENDS_ON
        if _mentions(a.analysis.references, b) or _mentions(b.analysis.references, a):
            return EdgeType.REFERENCES

        for (left, right), relation in TYPE_RELATIONS.items():
            if (a.type, b.type) in ((left, right), (right, left)):
                return relation

        if _title_in(a, b) or _title_in(b, a):
            return EdgeType.REFERENCES
        return None

    def edge_metadata(
        self, a: SourceContent, b: SourceContent, weight: float, factors: dict[str, float]
    ) -> EdgeMetadata:
        if weight > self.similar_threshold:
            tier = "high"
        elif weight > 0.4:
            tier = "medium"
        else:
            tier = "low"

        strength = "strong" if weight >= 0.6 else "moderate" if weight >= 0.35 else "weak"

        topics_a = {t.lower() for t in (*a.tags, *a.analysis.topics)}
        topics_b = {t.lower() for t in (*b.tags, *b.analysis.topics)}

        gap = abs(as_utc(a.created_at) - as_utc(b.created_at))
        temporal = max(0.0, 1.0 - gap / TEMPORAL_WINDOW)

        return EdgeMetadata(
            similarity_type=tier,
            relationship_strength=strength,
            common_topics=sorted(topics_a & topics_b),
            temporal_proximity=temporal,
            semantic_overlap=max(0.0, factors["embedding"]),
            dependency_depth=self.dependency_depth(a, b),
            relationship_confidence=sum(1 for v in factors.values() if v > 0) / len(factors),
        )

    @staticmethod
    def dependency_depth(a: SourceContent, b: SourceContent) -> float:
        """Composite score of how strongly one document builds on the other."""
        explicit = 0.0
        for names, other in (
            (a.analysis.depends_on + a.analysis.implements, b),
            (b.analysis.depends_on + b.analysis.implements, a),
        ):
            if _mentions(names, other):
                explicit = 1.0
        typed = 1.0 if ContentGraphBuilder.relationship(a, b) in (
            EdgeType.IMPLEMENTS,
            EdgeType.DEPENDS_ON,
        ) else 0.0
        shared = jaccard(
            (e.lower() for e in a.analysis.entities), (e.lower() for e in b.analysis.entities)
        )
        return clamp(0.5 * explicit + 0.2 * typed + 0.3 * shared)
