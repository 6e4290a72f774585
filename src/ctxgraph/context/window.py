"""Token-budgeted context window assembly.

Selection is greedy with a single replacement pass:

1. Score every candidate against the query and drop those below
   ``min_relevance``.
2. Walk candidates in priority order, taking each one that still fits.
3. When a candidate does not fit, compare it with the selected node of
   lowest value density (relevance per token). If the candidate is denser,
   strictly more relevant, and the swap stays within budget, it replaces
   that one node. Only the single weakest node is ever considered.

A node's cost is the estimate of its rendered block, so what is counted
is what is emitted. The rendered total never exceeds the budget.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from ctxgraph.chunking.tokens import TokenEstimator
from ctxgraph.context.models import ContextWindow, WindowMetrics, WindowOptions, WindowOrder
from ctxgraph.nodes.models import ContextNode, utcnow
from ctxgraph.search.relevance import extract_query_keywords, node_relevance

logger = logging.getLogger("ctxgraph.context")

SEPARATOR = "\n\n---\n\n"
RECENCY_HORIZON = timedelta(days=365)


@dataclass
class _Candidate:
    node: ContextNode
    relevance: float
    position: int  # index in the caller's candidate list
    cost: int

    @property
    def density(self) -> float:
        return self.relevance / max(self.cost, 1)


class ContextWindowBuilder:
    """Selects and renders nodes for a query under a token budget."""

    def __init__(self, options: WindowOptions | None = None) -> None:
        self.options = options or WindowOptions()

    def build(
        self,
        query: str,
        candidates: list[ContextNode],
        max_tokens: int,
        options: WindowOptions | None = None,
    ) -> ContextWindow:
        """Build a window from `candidates`, most relevant first."""
        options = options or self.options
        eligible = self._score(query, candidates, options)
        ordered = sorted(eligible, key=lambda c: -c.relevance)
        return self._assemble(query, ordered, max_tokens, options)

    def build_typed(
        self,
        query: str,
        candidates: list[ContextNode],
        max_tokens: int,
        chunk_type: str,
        options: WindowOptions | None = None,
    ) -> ContextWindow:
        """Like `build`, restricted to one chunk type."""
        typed = [n for n in candidates if n.chunk_type == chunk_type]
        return self.build(query, typed, max_tokens, options)

    def build_time_based(
        self,
        query: str,
        candidates: list[ContextNode],
        max_tokens: int,
        time_weight: float = 0.3,
        now: datetime | None = None,
        options: WindowOptions | None = None,
    ) -> ContextWindow:
        """Prioritize by a blend of relevance and recency (linear decay over a year)."""
        options = options or self.options
        now = now or utcnow()
        weight = min(1.0, max(0.0, time_weight))

        def priority(candidate: _Candidate) -> float:
            age = now - candidate.node.timestamp
            recency = max(0.0, 1.0 - age / RECENCY_HORIZON)
            return candidate.relevance * (1 - weight) + min(1.0, recency) * weight

        eligible = self._score(query, candidates, options)
        ordered = sorted(eligible, key=lambda c: -priority(c))
        return self._assemble(query, ordered, max_tokens, options)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _score(
        self, query: str, candidates: list[ContextNode], options: WindowOptions
    ) -> list[_Candidate]:
        keywords = extract_query_keywords(query)
        scored = []
        for position, node in enumerate(candidates):
            relevance = node_relevance(node, keywords)
            if relevance < options.min_relevance:
                continue
            cost = TokenEstimator.estimate(self.render_node(node, options))
            scored.append(_Candidate(node, relevance, position, cost))
        return scored

    @staticmethod
    def select(ordered: list[_Candidate], max_tokens: int) -> tuple[list[_Candidate], int]:
        """Greedy fill plus single-target replacement. Returns (selected, swaps)."""
        selected: list[_Candidate] = []
        used = 0
        swaps = 0

        for candidate in ordered:
            if used + candidate.cost <= max_tokens:
                selected.append(candidate)
                used += candidate.cost
                continue
            if not selected:
                continue

            weakest_index = min(range(len(selected)), key=lambda i: selected[i].density)
            weakest = selected[weakest_index]
            if (
                candidate.density > weakest.density
                and candidate.relevance > weakest.relevance
                and used - weakest.cost + candidate.cost <= max_tokens
            ):
                selected[weakest_index] = candidate
                used += candidate.cost - weakest.cost
                swaps += 1

        return selected, swaps

    def _assemble(
        self,
        query: str,
        ordered: list[_Candidate],
        max_tokens: int,
        options: WindowOptions,
    ) -> ContextWindow:
        selected, swaps = self.select(ordered, max_tokens)

        text = self._render(selected, options)
        total = TokenEstimator.estimate(text)
        # Separators are not part of any node's cost; trim until the whole fits
        while selected and total > max_tokens:
            selected.remove(min(selected, key=lambda c: c.density))
            text = self._render(selected, options)
            total = TokenEstimator.estimate(text)

        rendered = self._in_render_order(selected, options)
        eligible = len(ordered)
        average = sum(c.relevance for c in selected) / len(selected) if selected else 0.0
        metrics = WindowMetrics(
            node_count=len(selected),
            eligible_count=eligible,
            average_relevance=average,
            coverage=len(selected) / eligible if eligible else 1.0,
            swaps=swaps,
        )

        logger.info(
            f"Context window for {query!r}: {len(selected)}/{eligible} nodes, "
            f"{total}/{max_tokens} tokens, {metrics.coverage:.0%} coverage"
        )
        return ContextWindow(
            query=query,
            text=text,
            nodes=[c.node for c in rendered],
            relevance={c.node.id: c.relevance for c in rendered},
            total_tokens=total,
            max_tokens=max_tokens,
            metrics=metrics,
        )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @staticmethod
    def _in_render_order(selected: list[_Candidate], options: WindowOptions) -> list[_Candidate]:
        if options.order == WindowOrder.RELEVANCE:
            return sorted(selected, key=lambda c: -c.relevance)
        return sorted(selected, key=lambda c: c.position)

    def _render(self, selected: list[_Candidate], options: WindowOptions) -> str:
        blocks = [self.render_node(c.node, options) for c in self._in_render_order(selected, options)]
        separator = SEPARATOR if options.add_separators else "\n\n"
        return separator.join(blocks).strip()

    @staticmethod
    def render_node(node: ContextNode, options: WindowOptions) -> str:
        lines: list[str] = []
        if options.include_titles and node.title:
            lines.append(f"## {node.title}")

        if options.include_metadata:
            meta = [f"Type: {node.chunk_type}"]
            if node.importance:
                meta.append(f"Importance: {node.importance * 100:.1f}%")
            lines.append(f"*{' | '.join(meta)}*")

        if options.preserve_structure:
            lines.append(node.content)
        else:
            lines.append(re.sub(r"\n{3,}", "\n\n", node.content).strip())

        if (
            options.include_summaries
            and node.summary
            and node.summary != node.content
            and len(node.summary) < len(node.content) * 0.8
        ):
            lines.append(f"\n*Summary: {node.summary}*")

        return "\n".join(lines)
