"""
Vinyl Sync — Response Cache

In-memory cache for Discogs responses. Release and master metadata rarely
change (7-day TTL); marketplace prices go stale quickly (24-hour TTL). The
catalog client takes one cache per freshness class, so tests can swap in a
deterministic clock or disable caching entirely with NullCache.

Not persisted across restarts.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Protocol

import structlog

logger = structlog.get_logger(__name__)


class ResponseCache(Protocol):
    """Minimal capability the catalog client needs from a cache."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


class TTLCache:
    """
    Wall-clock TTL cache.

    Entries older than ``ttl_seconds`` are treated as misses and evicted on
    read.

    Usage:
        cache = TTLCache(ttl_seconds=86400)
        cache.set("stats:249504", stats)
        cache.get("stats:249504")
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    @property
    def ttl_seconds(self) -> float:
        return self._ttl_seconds

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        age_seconds = self._clock() - stored_at
        if age_seconds >= self._ttl_seconds:
            del self._entries[key]
            logger.debug("cache_expired", key=key, age_seconds=int(age_seconds))
            return None

        logger.debug("cache_hit", key=key, age_seconds=int(age_seconds))
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (self._clock(), value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullCache:
    """Cache that never stores anything."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any) -> None:
        return None
