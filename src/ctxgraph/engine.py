"""Context engine facade.

Wires the chunker, node factory, graph store, search engine and window
builder together. Every collaborator is passed in (or built from a
ProjectConfig by ``from_config``); the engine owns no process-wide state
beyond the cache instance it was given.

Usage:
    engine = ContextEngine.from_config(load_config(root), db_path=root / ".ctxgraph/graph.db")
    engine.ingest(SourceContent(id="readme", content=text), scope_key="docs")
    window = engine.retrieve("how do I configure auth?", scope_key="docs")
    print(window.text)
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from ctxgraph.cache import ResultCache
from ctxgraph.config import ProjectConfig
from ctxgraph.context.models import ContextWindow, WindowOptions
from ctxgraph.context.window import ContextWindowBuilder
from ctxgraph.exceptions import EmptyGraphError
from ctxgraph.graph.builder import GraphBuilder
from ctxgraph.graph.models import ContextGraph
from ctxgraph.graph.store import DocumentStore, GraphStore, InMemoryDocumentStore, SQLiteDocumentStore
from ctxgraph.graph.updater import GraphUpdater
from ctxgraph.nodes.factory import ContextNodeFactory
from ctxgraph.nodes.models import ContextNode, SourceContent
from ctxgraph.nodes.repository import InMemoryNodeRepository
from ctxgraph.search.engine import GraphSearchEngine, SearchOptions, SearchResult

logger = logging.getLogger("ctxgraph.engine")

SEARCH_CACHE_TTL = 60


class ContextEngine:
    """Ingests content per scope and answers budgeted retrieval queries."""

    def __init__(
        self,
        config: ProjectConfig | None = None,
        *,
        cache: ResultCache | None = None,
        documents: DocumentStore | None = None,
        repository: InMemoryNodeRepository | None = None,
        factory: ContextNodeFactory | None = None,
        builder: GraphBuilder | None = None,
        search_engine: GraphSearchEngine | None = None,
        window_builder: ContextWindowBuilder | None = None,
    ) -> None:
        self.config = config or ProjectConfig()
        self.cache = cache if cache is not None else ResultCache(
            default_ttl=self.config.cache.ttl_seconds,
            max_entries=self.config.cache.max_entries,
        )
        self.repository = repository if repository is not None else InMemoryNodeRepository()
        self.factory = factory if factory is not None else ContextNodeFactory()
        self.builder = builder if builder is not None else GraphBuilder(
            edge_threshold=self.config.graph.edge_threshold,
            similar_threshold=self.config.graph.similar_threshold,
            link_threshold=self.config.graph.link_threshold,
            radius=self.config.graph.layout_radius,
        )
        self.graphs = GraphStore(
            documents if documents is not None else InMemoryDocumentStore(),
            self.cache,
            node_source=self.repository,
            builder=self.builder,
            ttl_seconds=self.config.cache.ttl_seconds,
        )
        self.updater = GraphUpdater(self.builder)
        self.search_engine = search_engine if search_engine is not None else GraphSearchEngine(
            seed_limit=self.config.search.seed_limit,
            seed_threshold=self.config.search.seed_threshold,
        )
        self.window_builder = (
            window_builder if window_builder is not None else ContextWindowBuilder(self.window_options())
        )

    @classmethod
    def from_config(cls, config: ProjectConfig, db_path: str | Path | None = None) -> ContextEngine:
        """Engine backed by SQLite at `db_path`, or in memory when omitted."""
        documents = SQLiteDocumentStore(db_path) if db_path else InMemoryDocumentStore()
        return cls(config, documents=documents)

    # ------------------------------------------------------------------
    # Options from config
    # ------------------------------------------------------------------

    def search_options(self, **overrides) -> SearchOptions:
        search = self.config.search
        options = SearchOptions(
            max_results=search.max_results,
            max_depth=search.max_depth,
            min_relevance=search.min_relevance,
            max_context_tokens=search.max_context_tokens,
        )
        return replace(options, **overrides)

    def window_options(self) -> WindowOptions:
        window = self.config.window
        return WindowOptions(
            min_relevance=window.min_relevance,
            order=window.order,
            include_titles=window.include_titles,
            include_metadata=window.include_metadata,
            include_summaries=window.include_summaries,
            add_separators=window.add_separators,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, source: SourceContent, scope_key: str | None = None) -> list[ContextNode]:
        """Chunk a document into nodes and add them to a scope.

        Re-ingesting the same content id replaces its previous nodes.
        """
        scope_key = scope_key or self.config.default_scope
        nodes = self.factory.convert(source, self.config.chunking)
        replaced = self.repository.replace_content(scope_key, source.id, nodes)
        self._invalidate(scope_key)
        logger.info(
            f"Ingested {source.id} into scope '{scope_key}': {len(nodes)} nodes"
            + (f" (replaced {replaced})" if replaced else "")
        )
        return nodes

    def remove_content(self, content_id: str) -> list[str]:
        """Cascade-delete a content's nodes. Returns the scopes that changed."""
        scopes = self.repository.delete_content(content_id)
        for scope_key in scopes:
            self._invalidate(scope_key)
        return scopes

    def update_node(self, scope_key: str, node: ContextNode) -> ContextGraph:
        """Replace one node (e.g. after an embedding refresh) and update the graph in place."""
        self.repository.update(node)
        graph = self.graphs.get(scope_key)
        if graph is None:
            return self.build_graph(scope_key)
        updated = self.updater.update_node(graph, node)
        self._invalidate(scope_key)
        self.graphs.save(updated)
        return updated

    def load_scope(self, scope_key: str) -> bool:
        """Seed the repository from a persisted graph. False if none exists."""
        graph = self.graphs.get(scope_key)
        if graph is None:
            return False
        self.repository.add(scope_key, graph.nodes)
        return True

    # ------------------------------------------------------------------
    # Graphs
    # ------------------------------------------------------------------

    def build_graph(self, scope_key: str | None = None, force: bool = False) -> ContextGraph:
        return self.graphs.build(scope_key or self.config.default_scope, force=force)

    def get_graph(self, scope_key: str | None = None) -> ContextGraph | None:
        return self.graphs.get(scope_key or self.config.default_scope)

    def delete_scope(self, scope_key: str) -> bool:
        self.repository.drop_scope(scope_key)
        self._invalidate(scope_key)
        return self.graphs.delete(scope_key)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        scope_key: str | None = None,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        scope_key = scope_key or self.config.default_scope
        options = options or self.search_options()

        key = ResultCache.build_key(
            "search",
            {
                "query": query,
                "max_results": options.max_results,
                "max_depth": options.max_depth,
                "min_relevance": options.min_relevance,
                "include_context": options.include_context,
                "max_context_tokens": options.max_context_tokens,
                "scope": scope_key,
            },
        )
        cached = self._cache_get(key)
        if cached is not None:
            logger.debug(f"Search cache hit for {query!r}")
            return cached

        try:
            graph = self.graphs.build(scope_key)
        except EmptyGraphError:
            logger.warning(f"Scope '{scope_key}' is empty; nothing to search")
            return []

        results = self.search_engine.search(query, graph, options)
        self._cache_set(key, results)
        return results

    def build_window(
        self,
        query: str,
        scope_key: str | None = None,
        max_tokens: int | None = None,
        options: WindowOptions | None = None,
    ) -> ContextWindow:
        """Window over every node in the scope."""
        scope_key = scope_key or self.config.default_scope
        max_tokens = max_tokens if max_tokens is not None else self.config.window.max_tokens
        nodes = self.repository.nodes_for(scope_key)
        return self.window_builder.build(query, nodes, max_tokens, options)

    def retrieve(
        self,
        query: str,
        scope_key: str | None = None,
        max_tokens: int | None = None,
        options: WindowOptions | None = None,
    ) -> ContextWindow:
        """Search the graph, then pack the results into a budgeted window."""
        max_tokens = max_tokens if max_tokens is not None else self.config.window.max_tokens
        results = self.search(query, scope_key)
        return self.window_builder.build(query, [r.node for r in results], max_tokens, options)

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _scope_marker(scope_key: str) -> str:
        return f"scope:{scope_key}"

    def _invalidate(self, scope_key: str) -> None:
        self.graphs.invalidate(scope_key)
        try:
            # Substring match may also drop entries of scopes sharing a prefix
            removed = self.cache.invalidate(self._scope_marker(scope_key))
        except Exception as e:
            logger.warning(f"Cache invalidation failed for scope '{scope_key}': {e}")
            return
        if removed:
            logger.debug(f"Dropped {removed} cached results for scope '{scope_key}'")

    def _cache_get(self, key: str):
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed: {e}")
            return None

    def _cache_set(self, key: str, value) -> None:
        try:
            self.cache.set(key, value, SEARCH_CACHE_TTL)
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")
