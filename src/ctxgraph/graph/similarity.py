"""Similarity measures between nodes and between whole documents."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

import numpy as np

from ctxgraph.nodes.models import ContextNode

SIZE_SCALE = 8000  # token difference at which size proximity reaches 0

NODE_WEIGHTS = {"embedding": 0.6, "keywords": 0.3, "size": 0.1}


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp to [lo, hi]; non-finite values collapse to `lo`."""
    if not math.isfinite(value):
        return lo
    return min(hi, max(lo, value))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0 when either is empty, all-zero or lengths differ."""
    if not a or not b or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0 or not math.isfinite(norm):
        return 0.0
    return clamp(float(np.dot(va, vb)) / norm, -1.0, 1.0)


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    sa, sb = set(a), set(b)
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb)


def overlap_ratio(a: Iterable[str], b: Iterable[str]) -> float:
    """Shared items relative to the larger set."""
    sa, sb = set(a), set(b)
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / max(len(sa), len(sb))


def size_proximity(a_tokens: int, b_tokens: int) -> float:
    return max(0.0, 1.0 - abs(a_tokens - b_tokens) / SIZE_SCALE)


def node_similarity(a: ContextNode, b: ContextNode) -> float:
    """Blend of embedding cosine, keyword Jaccard and size proximity, in [0, 1]."""
    score = (
        NODE_WEIGHTS["embedding"] * cosine_similarity(a.embedding, b.embedding)
        + NODE_WEIGHTS["keywords"] * jaccard(a.keywords, b.keywords)
        + NODE_WEIGHTS["size"] * size_proximity(a.token_count, b.token_count)
    )
    return clamp(score)
