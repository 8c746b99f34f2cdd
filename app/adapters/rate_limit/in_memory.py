"""In-memory counter store with per-key expiry.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounterStore


@dataclass
class _Entry:
    value: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Dictionary-backed counter store that honours TTLs.

    Expired entries are dropped lazily on read and swept on write once the
    store grows past ``max_entries``.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        max_entries: int = 10_000,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._clock = clock
        self._max_entries = max_entries
        self._lock = threading.RLock()
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> int | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.value

    def put(self, key: str, value: int, *, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._sweep_locked()
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def _sweep_locked(self) -> None:
        now = self._clock()
        expired = [k for k, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]

        # Still full: drop the entries closest to expiry
        overflow = len(self._entries) - self._max_entries + 1
        if overflow > 0:
            oldest = sorted(self._entries.items(), key=lambda item: item[1].expires_at)[:overflow]
            for key, _ in oldest:
                del self._entries[key]
