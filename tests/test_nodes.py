"""Tests for context node creation and the node repository."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ctxgraph.chunking import ChunkingStrategy
from ctxgraph.nodes.factory import ContextNodeFactory, extract_keywords, node_stats, summarize
from ctxgraph.nodes.models import SourceContent, SourceMetadata
from ctxgraph.nodes.repository import InMemoryNodeRepository

from conftest import make_node


class TestKeywords:
    def test_most_frequent_first(self):
        text = "token token token refresh refresh session"
        assert extract_keywords(text) == ["token", "refresh", "session"]

    def test_short_and_stop_words_dropped(self):
        assert extract_keywords("the cat would have been there") == []

    def test_limit(self):
        text = " ".join(f"word{i}" for i in range(20))
        assert len(extract_keywords(text, limit=5)) == 5


class TestSummarize:
    def test_short_text_unchanged(self):
        assert summarize("Short note.") == "Short note."

    def test_whole_sentences(self):
        text = "First sentence here. " * 20
        summary = summarize(text, 50)
        assert len(summary) <= 50
        assert summary.endswith(".")

    def test_hard_cut(self):
        summary = summarize("x" * 400, 100)
        assert summary.endswith("...")
        assert len(summary) == 103


class TestContextNode:
    def test_frozen(self):
        node = make_node("a_chunk_0", "content")
        with pytest.raises(ValidationError):
            node.content = "changed"

    def test_importance_clamped(self):
        assert make_node("a_chunk_0", "x", importance=3.0).importance == 1.0
        assert make_node("a_chunk_0", "x").with_importance(-1).importance == 0.0

    def test_with_embedding_copies(self):
        node = make_node("a_chunk_0", "x")
        updated = node.with_embedding([0.1, 0.2])
        assert updated.embedding == [0.1, 0.2]
        assert node.embedding == []


class TestContextNodeFactory:
    def test_small_document_single_node(self):
        source = SourceContent(id="readme", title="Readme", content="Install the package with pip.",
                               tags=["setup"])
        nodes = ContextNodeFactory().convert(source)
        assert len(nodes) == 1
        node = nodes[0]
        assert node.id == "readme_chunk_0"
        assert node.parent_id == "readme"
        assert node.title == "Readme"
        assert node.keywords[0] == "setup"
        assert node.metadata.total_chunks == 1
        assert node.importance == pytest.approx(0.5)

    def test_empty_document(self):
        assert ContextNodeFactory().convert(SourceContent(id="empty", content="   ")) == []

    def test_large_document_chunked(self):
        paragraph = " ".join(["Alpha beta gamma delta epsilon zeta eta theta."] * 60)
        source = SourceContent(id="big", content="\n\n".join([paragraph] * 3))
        strategy = ChunkingStrategy(max_tokens=1000, max_chunk_size=2000)
        nodes = ContextNodeFactory().convert(source, strategy)
        assert [n.id for n in nodes] == ["big_chunk_0", "big_chunk_1", "big_chunk_2"]
        assert all(n.metadata.total_chunks == 3 for n in nodes)
        assert all(n.metadata.original_content_id == "big" for n in nodes)

    def test_conversation_ids(self, sample_conversation: str):
        source = SourceContent(id="chat", type="conversation", content=sample_conversation)
        nodes = ContextNodeFactory().convert(source)
        assert [n.id for n in nodes] == [
            "chat_turn_1_user",
            "chat_turn_1_ai",
            "chat_turn_2_user",
            "chat_turn_2_ai",
        ]
        assert nodes[0].metadata.role == "user"
        assert nodes[0].chunk_type == "conversation_turn"

    def test_plain_transcript_ids_are_unique(self):
        content = (
            "User: how do I log in\nAI: use the login form\n"
            "User: and reset it\nAI: use the reset link"
        )
        source = SourceContent(id="chat", type="conversation", content=content)
        nodes = ContextNodeFactory().convert(source)
        ids = [n.id for n in nodes]
        assert len(set(ids)) == 4
        assert ids == ["chat_turn_1_user", "chat_turn_1_ai", "chat_turn_2_user", "chat_turn_2_ai"]

    def test_repeated_header_turn_ids_are_unique(self):
        content = "## Turn 1\nUser: first\nAI: answer\nUser: follow up\n---\n## Turn 2\nUser: next\nAI: done"
        source = SourceContent(id="chat", type="conversation", content=content)
        nodes = ContextNodeFactory().convert(source)
        ids = [n.id for n in nodes]
        assert len(set(ids)) == len(ids) == 5

    def test_importance_by_type(self):
        code = SourceContent(id="c", type="code", content="x")
        docs = SourceContent(id="d", type="documentation", content="x")
        research = SourceContent(id="r", type="research", content="x")
        assert ContextNodeFactory.importance(code) == pytest.approx(0.7)
        assert ContextNodeFactory.importance(docs) == pytest.approx(0.65)
        assert ContextNodeFactory.importance(research) == pytest.approx(0.6)

    def test_importance_high_signals(self):
        source = SourceContent(
            id="t",
            type="code",
            content="x",
            metadata=SourceMetadata(complexity="high", urgency="high", importance="high"),
        )
        assert ContextNodeFactory.importance(source) == pytest.approx(1.0)

    def test_node_stats(self):
        nodes = [make_node("a_chunk_0", "one two"), make_node("b_chunk_0", "three", chunk_type="code")]
        stats = node_stats(nodes)
        assert stats["nodes"] == 2
        assert stats["contents"] == 2
        assert stats["chunk_types"] == {"text": 1, "code": 1}


class TestNodeRepository:
    def test_replace_content(self):
        repo = InMemoryNodeRepository()
        repo.add("s", [make_node("a_chunk_0", "old"), make_node("a_chunk_1", "old")])
        dropped = repo.replace_content("s", "a", [make_node("a_chunk_0", "new")])
        assert dropped == 2
        assert [n.content for n in repo.nodes_for("s")] == ["new"]

    def test_delete_content_cascades_across_scopes(self):
        repo = InMemoryNodeRepository()
        repo.add("one", [make_node("a_chunk_0", "x"), make_node("b_chunk_0", "y")])
        repo.add("two", [make_node("a_chunk_1", "z")])
        affected = repo.delete_content("a")
        assert sorted(affected) == ["one", "two"]
        assert [n.id for n in repo.nodes_for("one")] == ["b_chunk_0"]
        assert repo.nodes_for("two") == []

    def test_update_and_get(self):
        repo = InMemoryNodeRepository()
        repo.add("s", [make_node("a_chunk_0", "x")])
        assert repo.update(make_node("a_chunk_0", "y"))
        assert repo.get("a_chunk_0").content == "y"
        assert not repo.update(make_node("missing_chunk_0", "y"))
        assert repo.get("missing_chunk_0") is None

    def test_drop_scope(self):
        repo = InMemoryNodeRepository()
        repo.add("s", [make_node("a_chunk_0", "x")])
        repo.drop_scope("s")
        assert repo.scopes() == []
