"""Deterministic token estimation for mixed prose, markdown and code."""

from __future__ import annotations

import math
import re

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
HEADER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
LIST_ITEM_RE = re.compile(r"^[-*+]\s+", re.MULTILINE)
SPECIAL_CHAR_RE = re.compile(r"[^\w\s]")
PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")
SENTENCE_END_RE = re.compile(r"[.!?]+")


class TokenEstimator:
    """Estimate token counts without a tokenizer.

    The estimate is a weighted sum of structural features, so it is
    reproducible for identical input and grows as content is appended.
    """

    TOKENS_PER_WORD = 2.5
    CODE_BLOCK_COST = 100
    HEADER_COST = 20
    LIST_ITEM_COST = 10
    SPECIAL_CHAR_COST = 1
    PARAGRAPH_BREAK_COST = 15
    SENTENCE_COST = 5

    @classmethod
    def estimate(cls, text: str) -> int:
        """Estimate token count for a string. Empty text costs nothing."""
        if not text:
            return 0

        words = len(text.split())
        tokens = math.ceil(words * cls.TOKENS_PER_WORD)
        tokens += len(CODE_BLOCK_RE.findall(text)) * cls.CODE_BLOCK_COST
        tokens += len(HEADER_RE.findall(text)) * cls.HEADER_COST
        tokens += len(LIST_ITEM_RE.findall(text)) * cls.LIST_ITEM_COST
        tokens += len(SPECIAL_CHAR_RE.findall(text)) * cls.SPECIAL_CHAR_COST
        tokens += len(PARAGRAPH_BREAK_RE.findall(text)) * cls.PARAGRAPH_BREAK_COST
        tokens += len(SENTENCE_END_RE.findall(text)) * cls.SENTENCE_COST
        return tokens

    @classmethod
    def truncate(cls, text: str, max_tokens: int) -> str:
        """Return the longest word-aligned prefix of `text` within `max_tokens`."""
        if max_tokens <= 0:
            return ""
        if cls.estimate(text) <= max_tokens:
            return text

        # Binary search over word boundaries
        spans = [m.end() for m in re.finditer(r"\S+", text)]
        lo, hi = 0, len(spans)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if cls.estimate(text[: spans[mid - 1]]) <= max_tokens:
                lo = mid
            else:
                hi = mid - 1
        return text[: spans[lo - 1]] if lo else ""
