"""Semantic chunker.

Assembles token-budgeted fragments from the slices between detected
boundaries. Phases:

1. Analyze - classify the document and count structural elements.
2. Detect - enumerate split points (never inside an open code fence).
3. Slice - adjacent boundary pairs become slices; whitespace-only slices
   are folded into their successor.
4. Accumulate - greedily merge slices into fragments, cutting before a
   slice that would overflow ``max_chunk_size`` and at a strong boundary
   when the next strong-delimited section would not fit anyway.
5. Overlap - optionally repeat the tail of each fragment at the head of
   the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ctxgraph.chunking.boundaries import BoundaryDetector, classify_chunk
from ctxgraph.chunking.models import (
    Boundary,
    ChunkingResult,
    ChunkingStrategy,
    Fragment,
)
from ctxgraph.chunking.tokens import TokenEstimator

logger = logging.getLogger("ctxgraph.chunking")


@dataclass
class _Slice:
    start: int
    end: int
    tokens: int
    opens: Boundary
    closes: Boundary


class SemanticChunker:
    """Splits content into fragments at semantic boundaries."""

    def __init__(self, detector: BoundaryDetector | None = None) -> None:
        self.detector = detector or BoundaryDetector()

    def chunk(self, content: str, strategy: ChunkingStrategy | None = None) -> ChunkingResult:
        """Chunk `content` into ordered fragments.

        Never raises for empty input: blank content yields no fragments and
        content estimated below ``min_chunk_size`` yields exactly one
        fragment holding the trimmed input.
        """
        strategy = strategy or ChunkingStrategy()
        text = (content or "").strip()
        if not text:
            return ChunkingResult(strategy=strategy)

        analysis = self.detector.analyze(text)
        total = TokenEstimator.estimate(text)

        if total < strategy.min_chunk_size:
            fragment = Fragment(
                content=text,
                token_count=total,
                chunk_type=classify_chunk(text),
                start=0,
                end=len(text),
            )
            return ChunkingResult(
                fragments=[fragment], total_tokens=total, analysis=analysis, strategy=strategy
            )

        boundaries = self.detector.detect(text, analysis, strategy)
        slices = self._slice(text, boundaries)
        spans = self._accumulate(slices, strategy)

        fragments: list[Fragment] = []
        for index, (start, end, opens, closes) in enumerate(spans):
            body = text[start:end].strip()
            fragments.append(
                Fragment(
                    content=body,
                    token_count=TokenEstimator.estimate(body),
                    chunk_type=classify_chunk(body),
                    index=index,
                    start=start,
                    end=end,
                    metadata={"opens_at": opens.type.value, "closes_at": closes.type.value},
                )
            )

        if strategy.overlap_tokens > 0:
            fragments = self._apply_overlap(fragments, strategy.overlap_tokens)

        for fragment in fragments:
            fragment.total_chunks = len(fragments)

        logger.info(
            f"Chunked {len(text)} chars (~{total} tokens, {analysis.kind.value}) "
            f"into {len(fragments)} fragments"
        )
        return ChunkingResult(
            fragments=fragments,
            total_tokens=sum(f.token_count for f in fragments),
            analysis=analysis,
            strategy=strategy,
        )

    # ------------------------------------------------------------------
    # Slicing
    # ------------------------------------------------------------------

    @staticmethod
    def _slice(text: str, boundaries: list[Boundary]) -> list[_Slice]:
        slices: list[_Slice] = []
        opens = boundaries[0]
        for closes in boundaries[1:]:
            if closes.position <= opens.position:
                continue
            piece = text[opens.position : closes.position]
            if not piece.strip():
                # Fold blank runs into the next slice, keeping the opening boundary
                continue
            slices.append(
                _Slice(
                    start=opens.position,
                    end=closes.position,
                    tokens=TokenEstimator.estimate(piece),
                    opens=opens,
                    closes=closes,
                )
            )
            opens = closes
        return slices

    # ------------------------------------------------------------------
    # Greedy accumulation
    # ------------------------------------------------------------------

    @staticmethod
    def _section_tokens(slices: list[_Slice]) -> list[int]:
        """Tokens from each slice up to and including the next strong close."""
        sections = [0] * len(slices)
        running = 0
        for i in range(len(slices) - 1, -1, -1):
            if slices[i].closes.is_strong:
                running = 0
            running += slices[i].tokens
            sections[i] = running
        return sections

    def _accumulate(
        self, slices: list[_Slice], strategy: ChunkingStrategy
    ) -> list[tuple[int, int, Boundary, Boundary]]:
        sections = self._section_tokens(slices)
        spans: list[tuple[int, int, Boundary, Boundary]] = []
        current: list[_Slice] = []
        current_tokens = 0

        def finalize() -> None:
            nonlocal current, current_tokens
            if current:
                spans.append((current[0].start, current[-1].end, current[0].opens, current[-1].closes))
            current = []
            current_tokens = 0

        for i, piece in enumerate(slices):
            if current and current_tokens + piece.tokens > strategy.max_chunk_size:
                finalize()

            if not current and piece.tokens > strategy.max_chunk_size:
                logger.warning(
                    f"Unsplittable section of ~{piece.tokens} tokens exceeds "
                    f"max_chunk_size={strategy.max_chunk_size}; emitting it whole"
                )
                current = [piece]
                current_tokens = piece.tokens
                finalize()
                continue

            current.append(piece)
            current_tokens += piece.tokens

            is_last = i == len(slices) - 1
            if is_last or not piece.closes.is_strong or current_tokens < strategy.min_chunk_size:
                continue
            # Cut at this strong boundary if the next section cannot join us anyway
            if current_tokens + sections[i + 1] > strategy.max_chunk_size:
                finalize()

        finalize()
        return spans

    # ------------------------------------------------------------------
    # Overlap
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_overlap(fragments: list[Fragment], overlap_tokens: int) -> list[Fragment]:
        word_budget = int(overlap_tokens / TokenEstimator.TOKENS_PER_WORD)
        if word_budget <= 0:
            return fragments

        result = [fragments[0]]
        for previous, fragment in zip(fragments, fragments[1:]):
            tail = " ".join(previous.content.split()[-word_budget:])
            if not tail:
                result.append(fragment)
                continue
            prefix = f"{tail}\n\n"
            body = prefix + fragment.content
            result.append(
                fragment.model_copy(
                    update={
                        "content": body,
                        "token_count": TokenEstimator.estimate(body),
                        "overlap_chars": len(prefix),
                    }
                )
            )
        return result
