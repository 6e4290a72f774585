"""Context node factory.

Wraps fragments (or whole small documents) into ContextNodes with a
deterministic id, token estimate, importance score, keywords and summary.
Embeddings are left empty; an external provider fills them in later via
``ContextNode.with_embedding``.
"""

from __future__ import annotations

import logging
import re
from collections import Counter

from ctxgraph.chunking.boundaries import classify_chunk
from ctxgraph.chunking.chunker import SemanticChunker
from ctxgraph.chunking.conversation import ConversationChunker, looks_like_conversation
from ctxgraph.chunking.models import ChunkingStrategy, ChunkType, Fragment
from ctxgraph.chunking.tokens import TokenEstimator
from ctxgraph.nodes.models import ContextNode, NodeMetadata, SourceContent

logger = logging.getLogger("ctxgraph.nodes")

STOP_WORDS = frozenset(
    """
    about above after again against also because been before being below between
    both could does doing down during each from further have having here hers herself
    himself into itself just more most myself only other ours ourselves over same
    should some such than that their theirs them themselves then there these they
    this those through under until very were what when where which while whom will
    with would your yours yourself yourselves
    """.split()
)

TYPE_IMPORTANCE = {
    "code": 0.2,
    "documentation": 0.15,
    "research": 0.1,
}
BASE_IMPORTANCE = 0.5
HIGH_SIGNAL_BONUS = 0.1
SUMMARY_LENGTH = 150


def extract_keywords(text: str, limit: int = 10) -> list[str]:
    """Top `limit` words longer than 3 chars, most frequent first.

    Ties keep first-occurrence order.
    """
    words = re.sub(r"[^\w\s]", "", (text or "").lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    return [word for word, _ in counts.most_common(limit)]


def summarize(text: str, limit: int = SUMMARY_LENGTH) -> str:
    """Whole sentences up to `limit` chars, else a hard cut with an ellipsis."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text

    summary = ""
    for sentence in re.split(r"(?<=[.!?])\s+", text):
        candidate = f"{summary} {sentence}".strip()
        if len(candidate) > limit:
            break
        summary = candidate
    return summary or text[:limit].strip() + "..."


class ContextNodeFactory:
    """Creates ContextNodes from source content."""

    def __init__(
        self,
        chunker: SemanticChunker | None = None,
        conversation_chunker: ConversationChunker | None = None,
        keyword_limit: int = 10,
    ) -> None:
        self.chunker = chunker or SemanticChunker()
        self.conversation_chunker = conversation_chunker or ConversationChunker(self.chunker)
        self.keyword_limit = keyword_limit

    def create_node(
        self,
        fragment: Fragment,
        parent: SourceContent,
        chunk_index: int,
        total_chunks: int,
    ) -> ContextNode:
        """Wrap one fragment of `parent` into a node."""
        turn = fragment.metadata.get("turn")
        role = fragment.metadata.get("role")

        return ContextNode(
            id=self.node_id(parent.id, chunk_index, fragment),
            content=fragment.content,
            token_count=fragment.token_count,
            importance=self.importance(parent, fragment),
            keywords=extract_keywords(fragment.content, self.keyword_limit),
            summary=summarize(fragment.content),
            title=parent.title or None,
            metadata=NodeMetadata(
                chunk_index=chunk_index,
                total_chunks=total_chunks,
                original_content_id=parent.id,
                chunk_type=fragment.chunk_type.value,
                turn=turn,
                role=role,
            ),
            timestamp=parent.created_at,
            parent_id=parent.id,
        )

    @staticmethod
    def node_id(parent_id: str, chunk_index: int, fragment: Fragment) -> str:
        turn = fragment.metadata.get("turn")
        if turn is None:
            return f"{parent_id}_chunk_{chunk_index}"
        node_id = f"{parent_id}_turn_{turn}"
        if fragment.metadata.get("role"):
            node_id += f"_{fragment.metadata['role']}"
        if fragment.metadata.get("part") is not None:
            node_id += f"_{fragment.metadata['part']}"
        return node_id

    @staticmethod
    def importance(parent: SourceContent, fragment: Fragment | None = None) -> float:
        score = BASE_IMPORTANCE
        if parent.type == "code" or (fragment is not None and fragment.chunk_type == ChunkType.CODE):
            score += TYPE_IMPORTANCE["code"]
        elif parent.type in TYPE_IMPORTANCE:
            score += TYPE_IMPORTANCE[parent.type]

        declared = parent.metadata
        for signal in (declared.complexity, declared.urgency, declared.importance):
            if signal == "high":
                score += HIGH_SIGNAL_BONUS
        return min(1.0, max(0.0, score))

    def convert(
        self, source: SourceContent, strategy: ChunkingStrategy | None = None
    ) -> list[ContextNode]:
        """Turn a whole document into nodes.

        Conversations are split by turn; content within ``max_tokens``
        becomes a single node; anything larger is chunked semantically.
        """
        strategy = strategy or ChunkingStrategy()
        content = source.content or ""

        if source.type == "conversation" or looks_like_conversation(content):
            result = self.conversation_chunker.chunk(content, strategy)
            fragments = result.fragments
        elif TokenEstimator.estimate(content) <= strategy.max_tokens:
            if not content.strip():
                return []
            return [self.single_node(source)]
        else:
            fragments = self.chunker.chunk(content, strategy).fragments

        nodes = []
        taken: set[str] = set()
        for i, fragment in enumerate(fragments):
            node = self.create_node(fragment, source, i, len(fragments))
            if node.id in taken:
                node = node.model_copy(update={"id": f"{node.id}_{i}"})
            taken.add(node.id)
            nodes.append(node)
        logger.info(f"Converted content {source.id} into {len(nodes)} context nodes")
        return nodes

    def single_node(self, source: SourceContent) -> ContextNode:
        """One node for a document small enough to keep whole."""
        content = source.content.strip()
        fragment = Fragment(
            content=content,
            token_count=TokenEstimator.estimate(content),
            chunk_type=classify_chunk(content),
            end=len(content),
        )
        node = self.create_node(fragment, source, 0, 1)
        # Tags lead the keyword list for whole documents
        keywords = list(dict.fromkeys([*source.tags, *node.keywords]))[: self.keyword_limit]
        return node.model_copy(update={"keywords": keywords})


def node_stats(nodes: list[ContextNode]) -> dict:
    """Aggregate counts for a set of nodes."""
    by_type: dict[str, int] = {}
    for node in nodes:
        by_type[node.chunk_type] = by_type.get(node.chunk_type, 0) + 1
    total_tokens = sum(n.token_count for n in nodes)
    return {
        "nodes": len(nodes),
        "contents": len({n.metadata.original_content_id for n in nodes}),
        "total_tokens": total_tokens,
        "average_tokens": total_tokens / len(nodes) if nodes else 0.0,
        "average_importance": sum(n.importance for n in nodes) / len(nodes) if nodes else 0.0,
        "chunk_types": by_type,
    }
