"""Tests for the LRU/TTL cache."""

import pytest

from mcpd_common.cache import LRUCache


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestLRUCache:
    """Tests for LRUCache."""

    def test_set_and_get(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)

        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert "a" in cache
        assert len(cache) == 1

    def test_evicts_least_recently_used(self):
        """Test that reading an entry protects it from eviction."""
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert list(cache) == ["a", "c"]

    def test_overwrite_does_not_grow(self):
        cache = LRUCache(max_size=2)
        cache.set("a", 1)
        cache.set("a", 2)

        assert len(cache) == 1
        assert cache.get("a") == 2

    def test_ttl_expiry(self):
        """Test that entries expire after the TTL even when read."""
        clock = FakeClock()
        cache = LRUCache(max_size=10, ttl_seconds=10, clock=clock)
        cache.set("a", 1)

        clock.now = 9.0
        assert cache.get("a") == 1

        clock.now = 10.0
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_evict_expired(self):
        clock = FakeClock()
        cache = LRUCache(max_size=10, ttl_seconds=5, clock=clock)
        cache.set("old", 1)
        clock.now = 3.0
        cache.set("new", 2)
        clock.now = 6.0

        assert cache.evict_expired() == 1
        assert cache.values() == [2]

    def test_delete_and_clear(self):
        cache = LRUCache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False

        cache.clear()
        assert len(cache) == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            LRUCache(max_size=0)
