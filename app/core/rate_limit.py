"""Rate limiting dependencies for FastAPI routes.

This module wires the rate limiting adapters into the HTTP layer.

Strategy:
- Fixed-window limit per client, one budget per scope ("api" for reads,
  "injection" for writes).
- Client identity: bearer token prefix, then proxy IP headers, then the
  socket peer, then a hash of the User-Agent.
- Storage: a process-wide in-memory counter store shared by all scopes.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, Response, status

from app.adapters.rate_limit.base import AbstractCounterStore, AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryCounterStore
from app.core.config import settings

logger = logging.getLogger(__name__)

API_SCOPE = "rl:api"
INJECTION_SCOPE = "rl:injection"

_store: AbstractCounterStore | None = None
_limiters: dict[str, tuple[tuple[str, int, int], AbstractRateLimiter]] = {}


def get_counter_store() -> AbstractCounterStore:
    """Return the process-wide counter store."""

    global _store
    if _store is None:
        _store = InMemoryCounterStore()
    return _store


def _scope_limit(scope: str) -> int:
    if scope == INJECTION_SCOPE:
        return settings.app.rate_limit_injection_requests
    return settings.app.rate_limit_requests


def get_rate_limiter(scope: str = API_SCOPE) -> AbstractRateLimiter:
    """Return the limiter for ``scope``.

    Instances are cached in-module to preserve state across requests and are
    rebuilt when the configuration changes (primarily in tests).
    """

    config = (
        settings.app.rate_limit_prefix,
        _scope_limit(scope),
        settings.app.rate_limit_window_seconds,
    )

    cached = _limiters.get(scope)
    if cached is None or cached[0] != config:
        prefix, limit, window = config
        limiter = FixedWindowRateLimiter(
            get_counter_store(),
            limit=limit,
            window_seconds=window,
            prefix=f"{prefix}:{scope}",
        )
        _limiters[scope] = (config, limiter)
        return limiter

    return cached[1]


def reset_rate_limiters() -> None:
    """Drop all limiters and counters (used by tests)."""

    global _store
    _limiters.clear()
    _store = None


def _hash(value: str, length: int = 16) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:length]


def get_client_identifier(request: Request) -> str:
    """Identify the requesting client for rate limiting purposes.

    Args:
        request: FastAPI request.

    Returns:
        Namespaced identifier such as ``user:<token prefix>`` or ``ip:<addr>``.
    """

    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return f"user:{token[:16]}"

    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value and value.strip():
            return f"ip:{value.strip()}"

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return f"ip:{first}"

    if request.client and request.client.host:
        return f"ip:{request.client.host}"

    user_agent = request.headers.get("user-agent") or "unknown"
    return f"ua:{_hash(user_agent, 8)}"


def _rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def rate_limit_dependency(scope: str) -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency enforcing the limiter for ``scope``."""

    async def enforce(request: Request, response: Response) -> None:
        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiter(scope)
        client = get_client_identifier(request)
        key_type = client.split(":", 1)[0]
        result = limiter.consume(client)

        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "scope": scope,
                    "key_type": key_type,
                    "key_hash": _hash(client),
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            if settings.app.rate_limit_include_headers:
                response.headers.update(_rate_limit_headers(result))
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "scope": scope,
                "key_type": key_type,
                "key_hash": _hash(client),
                "limit": result.limit,
                "window_s": settings.app.rate_limit_window_seconds,
                "retry_after_s": result.retry_after_seconds,
            },
        )

        headers = _rate_limit_headers(result) if settings.app.rate_limit_include_headers else None
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers=headers,
        )

    enforce.__name__ = f"enforce_{scope.replace(':', '_')}"
    return enforce


enforce_api_rate_limit = rate_limit_dependency(API_SCOPE)
enforce_injection_rate_limit = rate_limit_dependency(INJECTION_SCOPE)
