"""Rate limiter and counter store interfaces.

The API depends on these abstractions (not the concrete implementations)
so the storage backend can be swapped with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        current: Units consumed in the current window after this call.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    current: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractCounterStore(ABC):
    """Key-value store holding integer counters with a time-to-live."""

    @abstractmethod
    def get(self, key: str) -> int | None:
        """Return the counter for ``key`` or None if absent/expired."""
        raise NotImplementedError

    @abstractmethod
    def put(self, key: str, value: int, *, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        raise NotImplementedError


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Unique client identifier (e.g., ``ip:1.2.3.4``).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget the current window's usage for ``key``."""
        raise NotImplementedError
