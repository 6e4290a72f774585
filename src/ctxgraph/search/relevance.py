"""Query-to-node relevance scoring shared by search and window assembly."""

from __future__ import annotations

import re

from ctxgraph.graph.similarity import clamp
from ctxgraph.nodes.models import ContextNode

TITLE_WEIGHT = 0.4
CONTENT_WEIGHT = 0.3
SUMMARY_WEIGHT = 0.2
KEYWORD_WEIGHT = 0.1
IMPORTANCE_BOOST = 1.2
IMPORTANCE_BOOST_THRESHOLD = 0.7


def extract_query_keywords(query: str) -> list[str]:
    """Lowercased query words longer than 2 chars, punctuation stripped."""
    keywords = []
    for word in (query or "").lower().split():
        if len(word) <= 2:
            continue
        word = re.sub(r"[^\w]", "", word)
        if word:
            keywords.append(word)
    return keywords


def text_relevance(text: str, keywords: list[str]) -> float:
    """Share of keywords found in `text`, each weighted by its length."""
    if not text or not keywords:
        return 0.0
    text = text.lower()
    total = sum(len(k) for k in keywords)
    matched = sum(len(k) for k in keywords if k in text)
    return matched / total if total else 0.0


def keyword_overlap(node_keywords: list[str], keywords: list[str]) -> float:
    """Fraction of node keywords that match a query keyword in either direction."""
    if not node_keywords:
        return 0.0
    matches = 0
    for keyword in node_keywords:
        k = keyword.lower()
        if any(q in k or k in q for q in keywords):
            matches += 1
    return matches / len(node_keywords)


def node_relevance(node: ContextNode, keywords: list[str]) -> float:
    """Weighted title/content/summary/keyword match, boosted for important nodes."""
    score = 0.0
    if node.title:
        score += TITLE_WEIGHT * text_relevance(node.title, keywords)
    score += CONTENT_WEIGHT * text_relevance(node.content, keywords)
    if node.summary:
        score += SUMMARY_WEIGHT * text_relevance(node.summary, keywords)
    if keywords:
        score += KEYWORD_WEIGHT * keyword_overlap(node.keywords, keywords)

    if node.importance > IMPORTANCE_BOOST_THRESHOLD:
        score *= IMPORTANCE_BOOST
    return clamp(score)
