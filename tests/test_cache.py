"""Tests for the TTL result cache."""

from __future__ import annotations

from ctxgraph.cache import ResultCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestResultCache:
    def test_set_and_get(self):
        cache = ResultCache()
        cache.set("k", {"v": 1})
        assert cache.get("k") == {"v": 1}
        assert cache.get("missing") is None

    def test_expiry_is_lazy(self):
        clock = FakeClock()
        cache = ResultCache(default_ttl=10, clock=clock)
        cache.set("k", "v")
        clock.advance(9)
        assert cache.get("k") == "v"
        clock.advance(2)
        assert len(cache) == 1  # still present until read
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self):
        clock = FakeClock()
        cache = ResultCache(default_ttl=100, clock=clock)
        cache.set("short", 1, ttl_seconds=1)
        cache.set("long", 2)
        clock.advance(5)
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_lru_bound(self):
        cache = ResultCache(max_entries=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # a is now most recent
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_unbounded(self):
        cache = ResultCache(max_entries=None)
        for i in range(2000):
            cache.set(str(i), i)
        assert len(cache) == 2000

    def test_invalidate_by_substring(self):
        cache = ResultCache()
        cache.set(ResultCache.build_key("search", {"query": "a", "scope": "docs"}), 1)
        cache.set(ResultCache.build_key("search", {"query": "b", "scope": "docs"}), 2)
        cache.set(ResultCache.build_key("search", {"query": "a", "scope": "code"}), 3)
        assert cache.invalidate("scope:docs") == 2
        assert len(cache) == 1

    def test_delete_and_clear(self):
        cache = ResultCache()
        cache.set("a", 1)
        assert cache.delete("a")
        assert not cache.delete("a")
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_build_key_sorted(self):
        key = ResultCache.build_key("search", {"scope": "s", "query": "q", "max_depth": 3})
        assert key == "search::max_depth:3|query:q|scope:s"
        assert key == ResultCache.build_key("search", {"max_depth": 3, "scope": "s", "query": "q"})

    def test_stats(self):
        cache = ResultCache()
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1
