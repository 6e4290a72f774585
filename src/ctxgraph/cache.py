"""TTL result cache with optional LRU bound.

Entries expire lazily: an expired entry is only removed when it is read
(or when it reaches the LRU tail). There is no background sweep. One
instance is owned by the host application and passed to whatever needs it.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

DEFAULT_TTL_SECONDS = 300
DEFAULT_MAX_ENTRIES = 1024


@dataclass
class CacheEntry:
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class ResultCache:
    """Thread-safe key/value cache with per-entry TTL."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int | None = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "evictions": 0}

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self._stats["misses"] += 1
                self._stats["evictions"] += 1
                return None
            self._entries.move_to_end(key)
            self._stats["hits"] += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
            self._stats["sets"] += 1
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)
                    self._stats["evictions"] += 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate(self, pattern: str) -> int:
        """Remove every key containing `pattern`. Returns how many were removed."""
        with self._lock:
            stale = [k for k in self._entries if pattern in k]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {**self._stats, "size": len(self._entries), "max_entries": self.max_entries}

    @staticmethod
    def build_key(operation: str, params: Mapping[str, Any]) -> str:
        """``operation::k1:v1|k2:v2`` with parameter names sorted."""
        serialized = "|".join(f"{name}:{params[name]}" for name in sorted(params))
        return f"{operation}::{serialized}"
