"""Semantic boundary detection.

Finds the positions where a document can be split without tearing a
structural unit apart: paragraph breaks, sentence ends, markdown headers
and code fences. A position inside an open code fence is never breakable.
"""

from __future__ import annotations

import bisect
import re

from ctxgraph.chunking.models import (
    Boundary,
    BoundaryStrength,
    BoundaryType,
    ChunkingStrategy,
    ChunkType,
    Complexity,
    ContentAnalysis,
    ContentKind,
)
from ctxgraph.chunking.tokens import CODE_BLOCK_RE, HEADER_RE, PARAGRAPH_BREAK_RE, SENTENCE_END_RE

FENCE = "```"
SENTENCE_BREAK_RE = re.compile(r"[.!?]+\s+")
CODE_HINT_RE = re.compile(r"\bfunction\s*\w*\s*\(|\bclass\s+[A-Z]\w*\s*[:({]|\bdef\s+\w+\s*\(")
URL_HINT_RE = re.compile(r"https?://|www\.")

_FENCE_TYPES = (BoundaryType.CODE_BLOCK_START, BoundaryType.CODE_BLOCK_END)


def classify_chunk(content: str) -> ChunkType:
    """Pick the structural subtype for a piece of content."""
    if FENCE in content or CODE_HINT_RE.search(content):
        return ChunkType.CODE
    if "#" in content or "**" in content or "[" in content:
        return ChunkType.MARKDOWN
    if URL_HINT_RE.search(content):
        return ChunkType.WEB_CONTENT
    return ChunkType.TEXT


class BoundaryDetector:
    """Enumerates typed, ranked split points for a document."""

    def analyze(self, content: str) -> ContentAnalysis:
        """Classify content and count its structural elements."""
        analysis = ContentAnalysis()

        if FENCE in content or CODE_HINT_RE.search(content):
            analysis.kind = ContentKind.CODE
            analysis.has_code = True
        elif "#" in content or "**" in content or "[" in content:
            analysis.kind = ContentKind.MARKDOWN
            analysis.has_markdown = True

        analysis.paragraph_count = len(PARAGRAPH_BREAK_RE.findall(content)) + 1
        analysis.sentence_count = len(SENTENCE_END_RE.findall(content))
        analysis.word_count = len(content.split())
        analysis.code_block_count = len(CODE_BLOCK_RE.findall(content))
        analysis.header_count = len(HEADER_RE.findall(content))

        if analysis.word_count > 1000 or analysis.code_block_count > 5:
            analysis.complexity = Complexity.HIGH
        elif analysis.word_count < 200:
            analysis.complexity = Complexity.LOW

        return analysis

    def detect(
        self,
        content: str,
        analysis: ContentAnalysis | None = None,
        strategy: ChunkingStrategy | None = None,
    ) -> list[Boundary]:
        """Return boundaries sorted by position, one per position.

        When several candidates share a position the strongest wins.
        The result always starts with a START and ends with an END boundary.
        """
        analysis = analysis or self.analyze(content)
        strategy = strategy or ChunkingStrategy()
        fence_ends = self._fence_marker_ends(content)

        candidates: list[Boundary] = []

        if strategy.respect_paragraphs:
            for match in PARAGRAPH_BREAK_RE.finditer(content):
                candidates.append(
                    Boundary(match.start(), BoundaryType.PARAGRAPH, BoundaryStrength.STRONG)
                )

        if analysis.kind != ContentKind.CODE:
            for match in SENTENCE_BREAK_RE.finditer(content):
                candidates.append(
                    Boundary(match.end(), BoundaryType.SENTENCE, BoundaryStrength.MEDIUM)
                )

        if strategy.respect_code_blocks:
            for match in CODE_BLOCK_RE.finditer(content):
                candidates.append(
                    Boundary(match.start(), BoundaryType.CODE_BLOCK_START, BoundaryStrength.STRONG)
                )
                candidates.append(
                    Boundary(match.end(), BoundaryType.CODE_BLOCK_END, BoundaryStrength.STRONG)
                )

        if strategy.respect_headers:
            for match in HEADER_RE.finditer(content):
                candidates.append(
                    Boundary(match.start(), BoundaryType.HEADER, BoundaryStrength.STRONG)
                )

        by_position: dict[int, Boundary] = {}
        for boundary in candidates:
            if not 0 < boundary.position < len(content):
                continue
            if boundary.type not in _FENCE_TYPES and self._inside_fence(fence_ends, boundary.position):
                continue
            current = by_position.get(boundary.position)
            if current is None or boundary.strength.rank > current.strength.rank:
                by_position[boundary.position] = boundary

        boundaries = [Boundary(0, BoundaryType.START, BoundaryStrength.STRONG)]
        boundaries.extend(by_position[pos] for pos in sorted(by_position))
        boundaries.append(Boundary(len(content), BoundaryType.END, BoundaryStrength.STRONG))
        return boundaries

    def is_inside_code_block(self, content: str, position: int) -> bool:
        """True when an odd number of fence markers precede `position`."""
        return self._inside_fence(self._fence_marker_ends(content), position)

    @staticmethod
    def _fence_marker_ends(content: str) -> list[int]:
        return [m.end() for m in re.finditer(re.escape(FENCE), content)]

    @staticmethod
    def _inside_fence(fence_ends: list[int], position: int) -> bool:
        return bisect.bisect_right(fence_ends, position) % 2 == 1
