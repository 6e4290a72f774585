"""Semantic-boundary-aware chunking.

Usage:
    from ctxgraph.chunking import SemanticChunker, ChunkingStrategy

    result = SemanticChunker().chunk(text, ChunkingStrategy(max_chunk_size=4000))
    for fragment in result.fragments:
        print(fragment.index, fragment.token_count)
"""

from ctxgraph.chunking.boundaries import BoundaryDetector
from ctxgraph.chunking.chunker import SemanticChunker
from ctxgraph.chunking.conversation import ConversationChunker, looks_like_conversation
from ctxgraph.chunking.models import ChunkingResult, ChunkingStrategy, ChunkType, Fragment
from ctxgraph.chunking.tokens import TokenEstimator

__all__ = [
    "BoundaryDetector",
    "SemanticChunker",
    "ConversationChunker",
    "looks_like_conversation",
    "ChunkingResult",
    "ChunkingStrategy",
    "ChunkType",
    "Fragment",
    "TokenEstimator",
]
