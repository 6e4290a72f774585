"""Incremental graph maintenance.

Applies single-node changes to an existing graph. Additions and updates
re-run the bucketed builder (it is cheap); removals just drop the node and
its incident edges.
"""

from __future__ import annotations

import logging

from ctxgraph.graph.builder import GraphBuilder
from ctxgraph.graph.models import ContextGraph
from ctxgraph.nodes.models import ContextNode, utcnow

logger = logging.getLogger("ctxgraph.graph")


class GraphUpdater:
    """Returns updated copies of a ContextGraph."""

    def __init__(self, builder: GraphBuilder | None = None) -> None:
        self.builder = builder if builder is not None else GraphBuilder()

    def add_node(self, graph: ContextGraph, node: ContextNode) -> ContextGraph:
        nodes = [n for n in graph.nodes if n.id != node.id] + [node]
        return self._rebuild(graph, nodes)

    def update_node(self, graph: ContextGraph, node: ContextNode) -> ContextGraph:
        if graph.node(node.id) is None:
            logger.warning(f"Node {node.id} not in graph {graph.scope_key}; adding it")
            return self.add_node(graph, node)
        nodes = [node if n.id == node.id else n for n in graph.nodes]
        return self._rebuild(graph, nodes)

    def remove_node(self, graph: ContextGraph, node_id: str) -> ContextGraph:
        return graph.model_copy(
            update={
                "nodes": [n for n in graph.nodes if n.id != node_id],
                "display_nodes": [d for d in graph.display_nodes if d.id != node_id],
                "edges": [e for e in graph.edges if node_id not in (e.source, e.target)],
                "updated_at": utcnow(),
            }
        )

    def _rebuild(self, graph: ContextGraph, nodes: list[ContextNode]) -> ContextGraph:
        display, edges = self.builder.build(nodes)
        return graph.model_copy(
            update={
                "nodes": nodes,
                "display_nodes": display,
                "edges": edges,
                "updated_at": utcnow(),
            }
        )
