"""
Tests for the in-memory TTL cache.
"""

import pytest

from src.services.ttl_cache import TTLCache


class TestGetSet:
    """Basic storage and expiry"""

    def test_set_and_get(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        cache.set("k", {"count": 1})
        assert cache.get("k") == {"count": 1}

    def test_missing_key_returns_none(self, clock):
        cache = TTLCache(clock=clock)
        assert cache.get("missing") is None

    def test_entry_live_until_exact_expiry(self, clock):
        """An entry is still live at now == expires_at"""
        cache = TTLCache(default_ttl=60, clock=clock)
        cache.set("k", "v")
        clock.advance(60)
        assert cache.get("k") == "v"

    def test_entry_expires_after_ttl(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        cache.set("k", "v")
        clock.advance(60.001)
        assert cache.get("k") is None
        # Lazily removed on read
        assert len(cache) == 0

    def test_per_entry_ttl_overrides_default(self, clock):
        cache = TTLCache(default_ttl=300, clock=clock)
        cache.set("short", "v", ttl=5)
        cache.set("long", "v")
        clock.advance(10)
        assert cache.get("short") is None
        assert cache.get("long") == "v"

    def test_get_does_not_extend_expiry(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("k", "v")
        clock.advance(8)
        assert cache.get("k") == "v"
        clock.advance(3)
        assert cache.get("k") is None

    def test_set_replaces_value_and_expiry(self, clock):
        cache = TTLCache(default_ttl=10, clock=clock)
        cache.set("k", "old")
        clock.advance(8)
        cache.set("k", "new")
        assert cache.expires_at("k") == clock.now + 10
        assert cache.get("k") == "new"

    def test_contains_respects_expiry(self, clock):
        cache = TTLCache(default_ttl=1, clock=clock)
        cache.set("k", "v")
        assert "k" in cache
        clock.advance(2)
        assert "k" not in cache

    def test_delete_and_clear(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.clear() == 1
        assert len(cache) == 0


class TestCleanup:
    """Explicit sweep of expired entries"""

    def test_cleanup_removes_only_expired(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("old", 1, ttl=10)
        cache.set("fresh", 2, ttl=100)
        clock.advance(50)

        assert cache.cleanup_expired() == 1
        assert len(cache) == 1
        assert cache.get("fresh") == 2

    def test_cleanup_on_empty_cache(self, clock):
        assert TTLCache(clock=clock).cleanup_expired() == 0


class TestEviction:
    """Bounded size behaviour"""

    def test_invalid_max_entries(self):
        with pytest.raises(ValueError):
            TTLCache(max_entries=0)

    def test_expired_entries_purged_before_live_eviction(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("expired", 1, ttl=1)
        cache.set("live", 2, ttl=100)
        clock.advance(5)

        cache.set("new", 3)

        assert cache.get("live") == 2
        assert cache.get("new") == 3
        assert cache.get_stats()["evictions"] == 0

    def test_lru_entry_evicted_when_full(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # b is now least recently used

        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.get_stats()["evictions"] == 1

    def test_overwrite_does_not_evict(self, clock):
        cache = TTLCache(max_entries=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        assert len(cache) == 2
        assert cache.get("b") == 2


class TestStats:
    def test_hit_rate(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("k", "v")
        cache.get("k")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["entries"] == 1

    def test_reset_stats(self, clock):
        cache = TTLCache(clock=clock)
        cache.get("missing")
        cache.reset_stats()
        assert cache.get_stats()["misses"] == 0
