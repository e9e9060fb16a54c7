"""
Vinyl Sync — Response Cache Tests
"""

from __future__ import annotations

import pytest

from vinylsync.utils.cache import NullCache, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestTTLCache:
    """Entries live for ttl_seconds and are evicted on read after that."""

    def test_hit_within_ttl(self) -> None:
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=86400, clock=clock)
        cache.set("stats:101", "payload")

        clock.now = 86399
        assert cache.get("stats:101") == "payload"

    def test_expired_entry_is_evicted(self) -> None:
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("release:101", "payload")

        clock.now = 60
        assert cache.get("release:101") is None
        assert len(cache) == 0

    def test_missing_key(self) -> None:
        assert TTLCache(ttl_seconds=60).get("release:1") is None

    def test_clear(self) -> None:
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.clear()

        assert len(cache) == 0

    def test_non_positive_ttl_rejected(self) -> None:
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)


def test_null_cache_never_stores() -> None:
    cache = NullCache()
    cache.set("release:101", "payload")
    assert cache.get("release:101") is None
