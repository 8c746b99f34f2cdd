"""Fixed-window rate limiter backed by a counter store.

Each client gets one counter per window, stored under
``{prefix}:{client}:{window_start}``. Counters outlive their window by a
small buffer and are then expired by the store.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractCounterStore,
    AbstractRateLimiter,
    RateLimitResult,
)

logger = logging.getLogger(__name__)

TTL_BUFFER_SECONDS = 60


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    The counter is only incremented while the client is under its limit, so
    blocked requests do not extend the penalty. If the store raises, the
    request is allowed and a warning is logged.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        limit: int,
        window_seconds: int,
        prefix: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Counter storage backend.
            limit: Maximum number of allowed units per window.
            window_seconds: Size of the fixed window in seconds.
            prefix: Namespace prepended to every stored key.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._store = store
        self._limit = limit
        self._window_seconds = window_seconds
        self._prefix = prefix
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def _get_window_bounds(self, now: float) -> tuple[int, int]:
        """Return (window_start, reset_at) in epoch seconds for ``now``."""
        window_start = int(now // self._window_seconds) * self._window_seconds
        return window_start, window_start + self._window_seconds

    def window_key(self, key: str, window_start: int) -> str:
        """Build the storage key for a client within a window."""
        base = f"{self._prefix}:{key}" if self._prefix else key
        return f"{base}:{window_start}"

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume budget for ``key`` in the current window.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        window_start, reset_at = self._get_window_bounds(now)
        storage_key = self.window_key(key, window_start)

        try:
            count = self._store.get(storage_key) or 0
            if count + cost <= self._limit:
                count += cost
                self._store.put(
                    storage_key,
                    count,
                    ttl_seconds=self._window_seconds + TTL_BUFFER_SECONDS,
                )
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    current=count,
                    remaining=max(0, self._limit - count),
                    reset_at=reset_at,
                    retry_after_seconds=None,
                )
        except Exception as exc:
            logger.warning(
                "rate_limit.store_unavailable",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return RateLimitResult(
                allowed=True,
                limit=self._limit,
                current=0,
                remaining=self._limit,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            current=count,
            remaining=max(0, self._limit - count),
            reset_at=reset_at,
            retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
        )

    def reset(self, key: str) -> None:
        window_start, _ = self._get_window_bounds(self._clock())
        try:
            self._store.delete(self.window_key(key, window_start))
        except Exception as exc:
            logger.warning(
                "rate_limit.reset_failed",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
