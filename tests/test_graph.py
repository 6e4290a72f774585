"""Tests for similarity, graph construction, incremental updates and the graph store."""

from __future__ import annotations

import math
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest

from ctxgraph.cache import ResultCache
from ctxgraph.exceptions import EmptyGraphError
from ctxgraph.graph.builder import ContentGraphBuilder, EdgeSet, GraphBuilder, radial_layout
from ctxgraph.graph.models import EdgeType, GraphEdge
from ctxgraph.graph.similarity import cosine_similarity, jaccard, node_similarity
from ctxgraph.graph.store import GraphStore, InMemoryDocumentStore, SQLiteDocumentStore
from ctxgraph.graph.updater import GraphUpdater
from ctxgraph.nodes.models import SourceContent, StructuredAnalysis
from ctxgraph.nodes.repository import InMemoryNodeRepository

from conftest import make_node


class TestSimilarity:
    def test_cosine_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [3.0, 1.0, 0.5]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_cosine_self(self):
        assert cosine_similarity([0.3, 0.4], [0.3, 0.4]) == pytest.approx(1.0)

    def test_cosine_degenerate(self):
        assert cosine_similarity([1.0, 2.0], [1.0]) == 0.0
        assert cosine_similarity([], []) == 0.0
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_jaccard(self):
        assert jaccard(["a", "b"], ["b", "c"]) == pytest.approx(1 / 3)
        assert jaccard([], ["a"]) == 0.0

    def test_node_similarity_bounded(self):
        a = make_node("a_chunk_0", "x", keywords=["auth"], embedding=[1.0, 0.0])
        b = make_node("b_chunk_0", "x", keywords=["auth"], embedding=[-1.0, 0.0])
        assert 0.0 <= node_similarity(a, b) <= 1.0


class TestGraphEdge:
    def test_canonical_order(self):
        assert GraphEdge.between("b", "a", 0.5).id == GraphEdge.between("a", "b", 0.5).id

    def test_weight_clamped(self):
        edge = GraphEdge.between("a", "b", 1.7)
        assert edge.weight == 1.0
        assert edge.label == "100%"

    def test_edge_set_dedupes(self):
        edges = EdgeSet()
        assert edges.add(GraphEdge.between("a", "b", 0.5))
        assert not edges.add(GraphEdge.between("b", "a", 0.9))
        assert not edges.add(GraphEdge.between("a", "a", 0.9))
        assert len(edges) == 1


class TestGraphBuilder:
    def test_shared_keywords_high_cosine_is_similar(self):
        a = make_node("a_chunk_0", "auth token", keywords=["auth", "token"], embedding=[1.0, 0.0])
        b = make_node("b_chunk_0", "auth token", keywords=["auth", "token"],
                      embedding=[0.9, math.sqrt(0.19)])
        _, edges = GraphBuilder().build([a, b])
        assert len(edges) == 1
        assert edges[0].type == EdgeType.SIMILAR
        assert edges[0].weight > 0.7

    def test_edges_valid(self, login_nodes):
        display, edges = GraphBuilder().build(login_nodes)
        ids = {n.id for n in login_nodes}
        assert len(display) == len(login_nodes)
        for edge in edges:
            assert edge.source != edge.target
            assert edge.source in ids and edge.target in ids
            assert 0.0 <= edge.weight <= 1.0
        assert len({e.id for e in edges}) == len(edges)

    def test_groups_by_first_keyword(self):
        nodes = [
            make_node("a_chunk_0", "x", keywords=["login"]),
            make_node("b_chunk_0", "x", keywords=["deploy"]),
            make_node("c_chunk_0", "x", keywords=["login"]),
        ]
        groups = GraphBuilder().group_by_signature(nodes)
        assert [g.member_indices for g in groups] == [[1], [0, 2]]

    def test_layout(self):
        positions = radial_layout(4, radius=100)
        assert positions[0].x == pytest.approx(100)
        assert positions[1].y == pytest.approx(100)


class TestContentGraphBuilder:
    def test_type_relation(self):
        code = SourceContent(id="impl", title="Impl", type="code", tags=["auth"], content="login code")
        docs = SourceContent(id="guide", title="Guide", type="documentation", tags=["auth"],
                             content="login guide")
        assert ContentGraphBuilder.relationship(code, docs) == EdgeType.IMPLEMENTS

    def test_explicit_dependency(self):
        a = SourceContent(id="a", title="Client", analysis=StructuredAnalysis(depends_on=["Server"]))
        b = SourceContent(id="b", title="Server")
        assert ContentGraphBuilder.relationship(a, b) == EdgeType.DEPENDS_ON
        assert ContentGraphBuilder.dependency_depth(a, b) >= 0.5

    def test_build_with_metadata(self):
        when = datetime(2024, 1, 1, tzinfo=timezone.utc)
        a = SourceContent(id="a", title="Tokens", tags=["auth", "token"], content="refresh tokens rotate",
                          embedding=[1.0, 0.0], created_at=when)
        b = SourceContent(id="b", title="Sessions", tags=["auth", "token"], content="refresh sessions expire",
                          embedding=[1.0, 0.1], created_at=when)
        _, edges = ContentGraphBuilder().build([a, b])
        assert len(edges) == 1
        meta = edges[0].metadata
        assert meta.common_topics == ["auth", "token"]
        assert meta.temporal_proximity == pytest.approx(1.0)
        assert meta.similarity_type == "high"

    def test_mixed_naive_and_aware_timestamps(self):
        a = SourceContent(id="a", title="Tokens", tags=["auth", "token"], content="refresh tokens rotate",
                          embedding=[1.0, 0.0], created_at=datetime(2024, 1, 1, 12, 0))
        b = SourceContent(id="b", title="Sessions", tags=["auth", "token"], content="refresh sessions expire",
                          embedding=[1.0, 0.1], created_at=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
        assert a.created_at.tzinfo is not None
        _, edges = ContentGraphBuilder().build([a, b])
        assert edges[0].metadata.temporal_proximity == pytest.approx(1.0)


class TestGraphUpdater:
    def test_add_update_remove(self, login_nodes):
        builder = GraphBuilder()
        store = GraphStore(InMemoryDocumentStore(), ResultCache(), builder=builder)
        graph = store.build("s", login_nodes[:5])
        updater = GraphUpdater(builder)

        added = updater.add_node(graph, login_nodes[5])
        assert added.node(login_nodes[5].id) is not None
        assert added.created_at == graph.created_at

        changed = updater.update_node(added, login_nodes[0].with_importance(0.9))
        assert changed.node(login_nodes[0].id).importance == pytest.approx(0.9)

        removed = updater.remove_node(changed, login_nodes[0].id)
        assert removed.node(login_nodes[0].id) is None
        assert all(login_nodes[0].id not in (e.source, e.target) for e in removed.edges)


class TestGraphStore:
    def test_empty_scope_raises(self):
        store = GraphStore(InMemoryDocumentStore(), ResultCache(), node_source=InMemoryNodeRepository())
        with pytest.raises(EmptyGraphError):
            store.build("nothing")

    def test_build_from_node_source(self, login_nodes):
        repo = InMemoryNodeRepository()
        repo.add("s", login_nodes)
        store = GraphStore(InMemoryDocumentStore(), ResultCache(), node_source=repo)
        graph = store.build("s")
        assert len(graph.nodes) == len(login_nodes)
        assert store.build("s") is graph  # cache hit

    def test_rebuild_preserves_created_at(self, login_nodes):
        store = GraphStore(InMemoryDocumentStore(), ResultCache())
        first = store.build("s", login_nodes[:3])
        second = store.build("s", login_nodes, force=True)
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert len(second.nodes) == len(login_nodes)

    def test_get_and_delete(self, login_nodes):
        documents = InMemoryDocumentStore()
        store = GraphStore(documents, ResultCache())
        store.build("s", login_nodes)

        fresh = GraphStore(documents, ResultCache())
        loaded = fresh.get("s")
        assert loaded is not None
        assert {n.id for n in loaded.nodes} == {n.id for n in login_nodes}

        assert fresh.delete("s")
        assert fresh.get("s") is None
        assert not fresh.delete("s")

    def test_cache_failure_is_ignored(self, login_nodes):
        class BrokenCache(ResultCache):
            def get(self, key):
                raise RuntimeError("cache down")

            def set(self, key, value, ttl_seconds=None):
                raise RuntimeError("cache down")

        store = GraphStore(InMemoryDocumentStore(), BrokenCache())
        graph = store.build("s", login_nodes)
        assert len(graph.nodes) == len(login_nodes)

    def test_sqlite_round_trip(self, tmp_path: Path, login_nodes):
        db = SQLiteDocumentStore(tmp_path / "graph.db")
        store = GraphStore(db, ResultCache())
        built = store.build("s", login_nodes)
        db.close()

        reopened = SQLiteDocumentStore(tmp_path / "graph.db")
        loaded = GraphStore(reopened, ResultCache()).get("s")
        assert loaded is not None
        assert [e.id for e in loaded.edges] == [e.id for e in built.edges]
        assert loaded.nodes[0].timestamp == built.nodes[0].timestamp
        assert reopened.keys() == ["s"]
        reopened.close()

    def test_sqlite_metadata(self, tmp_path: Path):
        db = SQLiteDocumentStore(tmp_path / "graph.db")
        db.set_metadata("built_at", {"ts": 1.5})
        assert db.get_metadata("built_at") == {"ts": 1.5}
        assert db.get_metadata("missing") is None
        db.close()

    def test_explicit_nodes_bypass_cache(self, login_nodes):
        store = GraphStore(InMemoryDocumentStore(), ResultCache())
        first = store.build("s", login_nodes[:2])
        second = store.build("s", login_nodes)
        assert second is not first
        assert len(second.nodes) == len(login_nodes)
        assert store.get("s") is second

    def test_concurrent_builds_coalesce(self, login_nodes):
        class SlowBuilder(GraphBuilder):
            def __init__(self):
                super().__init__()
                self.calls = 0

            def build(self, nodes):
                self.calls += 1
                time.sleep(0.2)
                return super().build(nodes)

        repo = InMemoryNodeRepository()
        repo.add("s", login_nodes)
        builder = SlowBuilder()
        store = GraphStore(InMemoryDocumentStore(), ResultCache(), node_source=repo, builder=builder)

        start = threading.Barrier(2)
        results = []

        def worker():
            start.wait()
            results.append(store.build("s"))

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert builder.calls == 1
        assert len(results) == 2
        assert results[0] is results[1]
