"""Graph search over context graphs."""

from ctxgraph.search.engine import (
    GraphSearchEngine,
    SearchCriteria,
    SearchOptions,
    SearchResult,
    TraversalPath,
)
from ctxgraph.search.relevance import extract_query_keywords, node_relevance, text_relevance

__all__ = [
    "GraphSearchEngine",
    "SearchCriteria",
    "SearchOptions",
    "SearchResult",
    "TraversalPath",
    "extract_query_keywords",
    "node_relevance",
    "text_relevance",
]
