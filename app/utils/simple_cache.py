"""In-memory TTL cache for computed statistics.

Thread-safe with LRU eviction; keeps the same interface a shared cache
(e.g. Redis) would expose so it can be swapped later.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheItem(Generic[V]):
    """Container for cached values with expiration metadata."""

    value: V
    expires_at: float


class SimpleTTLCache(Generic[V]):
    """Thread-safe, in-memory TTL cache with LRU eviction.

    A ``ttl_seconds`` of 0 disables caching: ``set`` becomes a no-op.
    """

    def __init__(
        self,
        ttl_seconds: int = 30,
        max_entries: int | None = 256,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem[V]] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SimpleTTLCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses})"
        )

    def get(self, key: str) -> V | None:
        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                return None

            if item.expires_at <= self._clock():
                self._evict_single(key)
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key[:16], "reason": "expired"})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            logger.debug("cache.hit", extra={"cache_key": key[:16]})
            return item.value

    def set(self, key: str, value: V) -> None:
        if self._ttl <= 0:
            return

        with self._lock:
            self._store[key] = CacheItem(value=value, expires_at=self._clock() + self._ttl)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

    def get_or_compute(self, key: str, compute: Callable[[], V]) -> tuple[V, bool]:
        """Return ``(value, cached)``, computing and storing on a miss."""
        value = self.get(key)
        if value is not None:
            return value, True
        value = compute()
        self.set(key, value)
        return value, False

    def clear(self) -> None:
        """Remove all cached entries (counters are kept)."""
        with self._lock:
            dropped = len(self._store)
            self._store.clear()
            self._evictions += dropped
        if dropped:
            logger.debug("cache.cleared", extra={"entries": dropped})

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""
        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return
        while len(self._store) > self._max_entries:
            self._store.popitem(last=False)
            self._evictions += 1


def build_cache_key(*parts: Any) -> str:
    """Build a stable cache key from arbitrary parts."""
    hasher = sha256()
    for part in parts:
        hasher.update(repr(part).encode())
        hasher.update(b"\x1f")
    return hasher.hexdigest()
