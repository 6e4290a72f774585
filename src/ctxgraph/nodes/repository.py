"""In-process node repository, grouped by scope key."""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from ctxgraph.nodes.factory import node_stats
from ctxgraph.nodes.models import ContextNode

logger = logging.getLogger("ctxgraph.nodes")


class NodeSource(Protocol):
    """Anything that can list the nodes belonging to a scope."""

    def nodes_for(self, scope_key: str) -> list[ContextNode]: ...


class InMemoryNodeRepository:
    """Holds ContextNodes per scope.

    Nodes are deleted by cascading from their parent content: removing a
    content id drops every node it produced, across all scopes.
    """

    def __init__(self) -> None:
        self._scopes: dict[str, dict[str, ContextNode]] = {}
        self._lock = threading.Lock()

    def add(self, scope_key: str, nodes: list[ContextNode]) -> None:
        """Insert or replace nodes (by id) in a scope."""
        with self._lock:
            bucket = self._scopes.setdefault(scope_key, {})
            for node in nodes:
                bucket[node.id] = node

    def replace_content(self, scope_key: str, content_id: str, nodes: list[ContextNode]) -> int:
        """Swap every node of one content for a new set. Returns how many were dropped."""
        with self._lock:
            bucket = self._scopes.setdefault(scope_key, {})
            stale = [nid for nid, n in bucket.items() if n.metadata.original_content_id == content_id]
            for nid in stale:
                del bucket[nid]
            for node in nodes:
                bucket[node.id] = node
        return len(stale)

    def nodes_for(self, scope_key: str) -> list[ContextNode]:
        with self._lock:
            return list(self._scopes.get(scope_key, {}).values())

    def get(self, node_id: str) -> ContextNode | None:
        with self._lock:
            for bucket in self._scopes.values():
                if node_id in bucket:
                    return bucket[node_id]
        return None

    def update(self, node: ContextNode) -> bool:
        """Replace a stored node in whichever scope holds it."""
        with self._lock:
            for bucket in self._scopes.values():
                if node.id in bucket:
                    bucket[node.id] = node
                    return True
        return False

    def delete_content(self, content_id: str) -> list[str]:
        """Cascade-delete all nodes of a content. Returns the affected scopes."""
        affected: list[str] = []
        with self._lock:
            for scope_key, bucket in self._scopes.items():
                stale = [
                    nid for nid, n in bucket.items()
                    if n.metadata.original_content_id == content_id
                ]
                for nid in stale:
                    del bucket[nid]
                if stale:
                    affected.append(scope_key)
        if affected:
            logger.info(f"Deleted nodes of content {content_id} from {len(affected)} scope(s)")
        return affected

    def drop_scope(self, scope_key: str) -> None:
        with self._lock:
            self._scopes.pop(scope_key, None)

    def scopes(self) -> list[str]:
        with self._lock:
            return sorted(self._scopes)

    def stats(self, scope_key: str) -> dict:
        return node_stats(self.nodes_for(scope_key))
