"""Graph persistence, one graph per scope key.

``GraphStore`` sits in front of a keyed document store and the shared
result cache. Builds are cache-checked first; writers for the same scope
are serialized with a per-key lock, and a caller that waited on that lock
is served the graph the previous holder just built.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Protocol

from ctxgraph.cache import ResultCache
from ctxgraph.exceptions import EmptyGraphError, StoreError
from ctxgraph.graph.builder import GraphBuilder
from ctxgraph.graph.models import ContextGraph
from ctxgraph.nodes.models import ContextNode, utcnow
from ctxgraph.nodes.repository import NodeSource

logger = logging.getLogger("ctxgraph.graph")

GRAPH_CACHE_TTL = 300


class DocumentStore(Protocol):
    """Minimal keyed document persistence."""

    def get(self, key: str) -> dict[str, Any] | None: ...

    def put(self, key: str, document: dict[str, Any]) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


class InMemoryDocumentStore:
    """Dict-backed document store for tests and single-process use."""

    def __init__(self) -> None:
        self._docs: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            raw = self._docs.get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, document: dict[str, Any]) -> None:
        # Stored serialized so callers never share mutable state with the store
        raw = json.dumps(document)
        with self._lock:
            self._docs[key] = raw

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._docs.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._docs)


class SQLiteDocumentStore:
    """Persists documents as JSON rows in a SQLite file."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        return self._conn

    def _create_tables(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS documents (
                key TEXT PRIMARY KEY,
                body TEXT NOT NULL,
                updated_at REAL NOT NULL
            );

            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        conn.commit()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            try:
                row = self._get_conn().execute(
                    "SELECT body FROM documents WHERE key = ?", (key,)
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to read document '{key}': {e}") from e
        return json.loads(row["body"]) if row else None

    def put(self, key: str, document: dict[str, Any]) -> None:
        with self._lock:
            conn = self._get_conn()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO documents (key, body, updated_at) VALUES (?, ?, ?)",
                    (key, json.dumps(document), time.time()),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to write document '{key}': {e}") from e

    def delete(self, key: str) -> bool:
        with self._lock:
            conn = self._get_conn()
            cursor = conn.execute("DELETE FROM documents WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._get_conn().execute("SELECT key FROM documents ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def set_metadata(self, key: str, value: Any) -> None:
        with self._lock:
            conn = self._get_conn()
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (key, json.dumps(value)),
            )
            conn.commit()

    def get_metadata(self, key: str) -> Any:
        with self._lock:
            row = self._get_conn().execute(
                "SELECT value FROM metadata WHERE key = ?", (key,)
            ).fetchone()
        return json.loads(row["value"]) if row else None

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None


class GraphStore:
    """Builds, caches and persists one ContextGraph per scope key."""

    def __init__(
        self,
        documents: DocumentStore,
        cache: ResultCache,
        node_source: NodeSource | None = None,
        builder: GraphBuilder | None = None,
        ttl_seconds: float = GRAPH_CACHE_TTL,
    ) -> None:
        self.documents = documents
        self.cache = cache
        self.node_source = node_source
        self.builder = builder if builder is not None else GraphBuilder()
        self.ttl_seconds = ttl_seconds
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @staticmethod
    def cache_key(scope_key: str) -> str:
        return ResultCache.build_key("graph", {"scope": scope_key})

    def build(
        self,
        scope_key: str,
        nodes: list[ContextNode] | None = None,
        force: bool = False,
    ) -> ContextGraph:
        """Build (or fetch from cache) the graph for a scope.

        `nodes` defaults to the injected node source. Passing `nodes`
        always rebuilds, since the cached graph may cover other nodes.
        Raises EmptyGraphError when there is nothing to build.
        """
        force = force or nodes is not None
        if not force:
            cached = self._cache_get(scope_key)
            if cached is not None:
                return cached

        with self._lock_for(scope_key):
            if not force:
                # Another builder may have finished while we waited
                cached = self._cache_get(scope_key)
                if cached is not None:
                    return cached

            if nodes is None:
                nodes = self.node_source.nodes_for(scope_key) if self.node_source else []
            if not nodes:
                raise EmptyGraphError(scope_key)

            start = time.time()
            display, edges = self.builder.build(list(nodes))
            existing = self._load(scope_key)
            now = utcnow()
            graph = ContextGraph(
                scope_key=scope_key,
                nodes=list(nodes),
                display_nodes=display,
                edges=edges,
                created_at=existing.created_at if existing else now,
                updated_at=now,
            )
            self.documents.put(scope_key, graph.model_dump(mode="json"))
            self._cache_set(scope_key, graph)

        logger.info(
            f"{'Rebuilt' if existing else 'Built'} graph for scope '{scope_key}': "
            f"{len(graph.nodes)} nodes, {len(graph.edges)} edges "
            f"in {(time.time() - start) * 1000:.1f}ms"
        )
        return graph

    def save(self, graph: ContextGraph) -> None:
        """Persist an externally modified graph (e.g. an incremental update)."""
        with self._lock_for(graph.scope_key):
            self.documents.put(graph.scope_key, graph.model_dump(mode="json"))
            self._cache_set(graph.scope_key, graph)

    def get(self, scope_key: str) -> ContextGraph | None:
        cached = self._cache_get(scope_key)
        if cached is not None:
            return cached
        graph = self._load(scope_key)
        if graph is not None:
            self._cache_set(scope_key, graph)
        return graph

    def delete(self, scope_key: str) -> bool:
        with self._lock_for(scope_key):
            removed = self.documents.delete(scope_key)
            self._cache_delete(scope_key)
        if removed:
            logger.info(f"Deleted graph for scope '{scope_key}'")
        return removed

    def invalidate(self, scope_key: str) -> None:
        """Forget the cached graph so the next build recomputes it."""
        self._cache_delete(scope_key)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, scope_key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(scope_key)
            if lock is None:
                lock = self._locks[scope_key] = threading.Lock()
            return lock

    def _load(self, scope_key: str) -> ContextGraph | None:
        document = self.documents.get(scope_key)
        if document is None:
            return None
        return ContextGraph.model_validate(document)

    # The cache is an optimization only: faults are logged and ignored.

    def _cache_get(self, scope_key: str) -> ContextGraph | None:
        try:
            return self.cache.get(self.cache_key(scope_key))
        except Exception as e:
            logger.warning(f"Graph cache read failed for '{scope_key}': {e}")
            return None

    def _cache_set(self, scope_key: str, graph: ContextGraph) -> None:
        try:
            self.cache.set(self.cache_key(scope_key), graph, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Graph cache write failed for '{scope_key}': {e}")

    def _cache_delete(self, scope_key: str) -> None:
        try:
            self.cache.delete(self.cache_key(scope_key))
        except Exception as e:
            logger.warning(f"Graph cache delete failed for '{scope_key}': {e}")
