"""Graph search: seed selection plus bounded best-path traversal.

From each seed the engine walks connected edges up to ``max_depth`` hops
and keeps only the best-scoring node reached (with the path to it). Every
recursive branch gets its own copy of the visited set, so sibling branches
may each reach a shared neighbour. Depth is hard-bounded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import cmp_to_key

import networkx as nx

from ctxgraph.chunking.tokens import TokenEstimator
from ctxgraph.graph.models import ContextGraph
from ctxgraph.nodes.models import ContextNode
from ctxgraph.search.relevance import extract_query_keywords, node_relevance

logger = logging.getLogger("ctxgraph.search")

TIE_TOLERANCE = 0.01


@dataclass
class SearchOptions:
    max_results: int = 10
    max_depth: int = 3
    min_relevance: float = 0.1
    include_context: bool = False
    max_context_tokens: int = 4000


@dataclass
class TraversalPath:
    """Best node reached from one seed, and how we got there."""

    seed_id: str
    node_ids: list[str]  # seed first, best node last
    edge_ids: list[str]
    relevance: float

    @property
    def best_id(self) -> str:
        return self.node_ids[-1]

    @property
    def length(self) -> int:
        return len(self.node_ids)


@dataclass
class SearchResult:
    node: ContextNode
    relevance: float
    path: list[str] = field(default_factory=list)
    context: str | None = None


@dataclass
class SearchCriteria:
    keywords: list[str] = field(default_factory=list)
    chunk_types: list[str] = field(default_factory=list)
    min_importance: float | None = None
    start: datetime | None = None
    end: datetime | None = None


class GraphSearchEngine:
    """Answers a query against one ContextGraph."""

    def __init__(self, seed_limit: int = 5, seed_threshold: float = 0.1) -> None:
        self.seed_limit = seed_limit
        self.seed_threshold = seed_threshold

    def search(
        self,
        query: str,
        graph: ContextGraph,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """Ranked nodes relevant to `query`; empty when nothing qualifies."""
        options = options or SearchOptions()
        keywords = extract_query_keywords(query)

        seeds = self.find_seeds(keywords, graph.nodes)
        if not seeds:
            logger.warning(f"No seed nodes found for query: {query!r}")
            return []

        G = graph.to_networkx()
        paths = self._discover(keywords, G, [s.id for s in seeds], options.max_depth)
        results = self._paths_to_results(paths, G, keywords, options.min_relevance)
        ranked = self.rank(results)[: options.max_results]

        if options.include_context:
            for result in ranked:
                result.context = TokenEstimator.truncate(
                    result.node.content, options.max_context_tokens
                )

        logger.info(
            f"Search {query!r}: {len(seeds)} seeds, {len(paths)} paths, {len(ranked)} results"
        )
        return ranked

    def find_seeds(self, keywords: list[str], nodes: list[ContextNode]) -> list[ContextNode]:
        scored = []
        for node in nodes:
            score = node_relevance(node, keywords)
            if score > self.seed_threshold:
                scored.append((score, node))
        scored.sort(key=lambda item: -item[0])
        return [node for _, node in scored[: self.seed_limit]]

    def discover_paths(
        self,
        query: str,
        graph: ContextGraph,
        seed_ids: list[str],
        max_depth: int = 3,
    ) -> list[TraversalPath]:
        """Best path from each of the given seeds for `query`."""
        return self._discover(extract_query_keywords(query), graph.to_networkx(), seed_ids, max_depth)

    def _discover(
        self,
        keywords: list[str],
        G: nx.Graph,
        seed_ids: list[str],
        max_depth: int,
    ) -> list[TraversalPath]:
        """Best path per seed.

        The top-level visited set is shared across seeds, so a later seed's
        walk cannot pass back through an earlier seed; below each seed every
        branch works on its own copy.
        """
        visited: set[str] = set()
        paths = []
        for seed_id in seed_ids:
            if seed_id not in G:
                continue
            path = self._traverse(seed_id, seed_id, keywords, G, max_depth, visited, [seed_id], [])
            if path is not None:
                paths.append(path)
        return paths

    def _traverse(
        self,
        seed_id: str,
        node_id: str,
        keywords: list[str],
        G: nx.Graph,
        remaining_depth: int,
        visited: set[str],
        path: list[str],
        edge_ids: list[str],
    ) -> TraversalPath | None:
        if remaining_depth <= 0 or node_id in visited:
            return None
        visited.add(node_id)

        best: TraversalPath | None = None
        best_score = 0.0

        score = node_relevance(G.nodes[node_id]["node"], keywords)
        if score > best_score:
            best = TraversalPath(seed_id, list(path), list(edge_ids), score)
            best_score = score

        for neighbor in G.neighbors(node_id):
            if neighbor in visited:
                continue
            sub = self._traverse(
                seed_id,
                neighbor,
                keywords,
                G,
                remaining_depth - 1,
                set(visited),
                path + [neighbor],
                edge_ids + [G.edges[node_id, neighbor]["id"]],
            )
            if sub is not None and sub.relevance > best_score:
                best = sub
                best_score = sub.relevance

        return best

    @staticmethod
    def _paths_to_results(
        paths: list[TraversalPath],
        G: nx.Graph,
        keywords: list[str],
        min_relevance: float,
    ) -> list[SearchResult]:
        results: list[SearchResult] = []
        seen: set[str] = set()
        for path in paths:
            for i, node_id in enumerate(path.node_ids):
                if node_id in seen:
                    continue
                node = G.nodes[node_id]["node"]
                relevance = node_relevance(node, keywords)
                if relevance < min_relevance:
                    continue
                seen.add(node_id)
                results.append(SearchResult(node=node, relevance=relevance, path=path.node_ids[: i + 1]))
        return results

    @staticmethod
    def rank(results: list[SearchResult]) -> list[SearchResult]:
        """Relevance, then importance, then shorter path; near-ties within 0.01."""

        def compare(a: SearchResult, b: SearchResult) -> int:
            if abs(a.relevance - b.relevance) > TIE_TOLERANCE:
                return -1 if a.relevance > b.relevance else 1
            if abs(a.node.importance - b.node.importance) > TIE_TOLERANCE:
                return -1 if a.node.importance > b.node.importance else 1
            return len(a.path) - len(b.path)

        return sorted(results, key=cmp_to_key(compare))

    def search_by_criteria(self, graph: ContextGraph, criteria: SearchCriteria) -> list[ContextNode]:
        """Filter graph nodes by keywords, chunk type, importance and date range."""
        nodes = list(graph.nodes)

        if criteria.keywords:
            wanted = [k.lower() for k in criteria.keywords]
            nodes = [
                n for n in nodes
                if any(k in f"{n.title or ''} {n.content} {n.summary}".lower() for k in wanted)
            ]
        if criteria.chunk_types:
            nodes = [n for n in nodes if n.chunk_type in criteria.chunk_types]
        if criteria.min_importance is not None:
            nodes = [n for n in nodes if n.importance >= criteria.min_importance]
        if criteria.start is not None:
            nodes = [n for n in nodes if n.timestamp >= criteria.start]
        if criteria.end is not None:
            nodes = [n for n in nodes if n.timestamp <= criteria.end]

        return nodes
