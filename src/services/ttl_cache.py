"""
In-Memory TTL Cache

Generic expiring key/value store used for rate limit counters and other
short-lived data.

Features:
- Per-entry TTL with lazy eviction (expired entries are never returned)
- Optional LRU eviction when max_entries is reached
- Explicit sweep of expired entries (cleanup_expired)
- Thread-safe operations
- Injectable clock for deterministic tests

Usage:
    cache = TTLCache(default_ttl=60)
    cache.set("key", {"data": "value"}, ttl=30)
    value = cache.get("key")  # None once 30 seconds have passed
"""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Single cache entry with expiration tracking."""

    value: Any
    expires_at: float
    created_at: float


class TTLCache:
    """
    Thread-safe in-memory cache with per-entry expiry.

    An entry is live while ``now <= expires_at``. Reading an entry never
    changes its expiry; only ``set`` does.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive when set")
        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self._clock = clock
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = Lock()
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict[str, int]:
        return {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "evictions": 0,
            "expirations": 0,
        }

    def get(self, key: str) -> Any | None:
        """
        Get a live value from the cache.

        Returns:
            The stored value, or None when the key is missing or expired.
        """
        with self._lock:
            entry = self._cache.get(key)

            if entry is None:
                self._stats["misses"] += 1
                return None

            if self._clock() > entry.expires_at:
                del self._cache[key]
                self._stats["expirations"] += 1
                self._stats["misses"] += 1
                return None

            # LRU bookkeeping only, expiry is untouched
            self._cache.move_to_end(key)
            self._stats["hits"] += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """
        Set value in cache with TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Seconds until the entry expires (uses default if None)
        """
        ttl = ttl if ttl is not None else self.default_ttl
        now = self._clock()
        entry = CacheEntry(value=value, expires_at=now + ttl, created_at=now)

        with self._lock:
            if key not in self._cache and self.max_entries is not None:
                self._make_room(now)

            self._cache[key] = entry
            self._cache.move_to_end(key)
            self._stats["sets"] += 1

    def _make_room(self, now: float) -> None:
        """Purge expired entries, then evict LRU entries until one slot is free."""
        if len(self._cache) < self.max_entries:
            return

        self._purge_expired(now)

        while len(self._cache) >= self.max_entries:
            oldest_key, _ = self._cache.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug("TTL cache evicted live entry: %s", oldest_key)

    def _purge_expired(self, now: float) -> int:
        expired_keys = [key for key, entry in self._cache.items() if now > entry.expires_at]
        for key in expired_keys:
            del self._cache[key]
        self._stats["expirations"] += len(expired_keys)
        return len(expired_keys)

    def delete(self, key: str) -> bool:
        """Delete a key from cache."""
        with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    def clear(self) -> int:
        """Clear all entries from cache."""
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
            return count

    def cleanup_expired(self) -> int:
        """Remove all expired entries and return how many were removed."""
        with self._lock:
            removed = self._purge_expired(self._clock())

        if removed:
            logger.debug("TTL cache cleanup: %d expired entries removed", removed)
        return removed

    def expires_at(self, key: str) -> float | None:
        """Return the expiry timestamp of a live entry."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None or self._clock() > entry.expires_at:
                return None
            return entry.expires_at

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and self._clock() <= entry.expires_at

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet swept."""
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            lookups = self._stats["hits"] + self._stats["misses"]
            hit_rate = self._stats["hits"] / lookups if lookups > 0 else 0

            return {
                "entries": len(self._cache),
                "max_entries": self.max_entries,
                **self._stats,
                "hit_rate": round(hit_rate * 100, 2),
            }

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        with self._lock:
            self._stats = self._empty_stats()
