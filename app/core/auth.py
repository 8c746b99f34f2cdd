"""Optional API key authentication.

The tracker is meant for a single household, so authentication is off by
default. When ``APP_API_KEY_REQUIRED=true`` every /v1 route requires an
``X-API-Key`` header matching one of the comma-separated ``APP_API_KEYS``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header

from app.core.config import settings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ")
        {'key1', 'key2', 'key3'}
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _key_hash(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str | None) -> None:
    """Validate that the provided API key matches a configured key.

    Args:
        provided_key: API key to validate (may be missing).

    Raises:
        AuthenticationAppError: If authentication is required and the key is
            missing, unknown, or no keys are configured.
    """
    if not settings.app.api_key_required:
        return

    valid_keys = parse_api_keys(settings.app.api_keys)

    if not valid_keys:
        logger.error(
            "auth.failed",
            extra={"reason": "api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="API key authentication is enabled but no valid keys are configured",
            details={"hint": "Set APP_API_KEYS or disable auth with APP_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.failed", extra={"reason": "missing_api_key"})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    if not any(hmac.compare_digest(provided_key, key) for key in valid_keys):
        logger.warning(
            "auth.failed",
            extra={"reason": "invalid_api_key", "api_key_hash": _key_hash(provided_key)},
        )
        raise AuthenticationAppError(
            code="invalid_api_key",
            message="Invalid or missing API key",
        )

    logger.debug("auth.success", extra={"api_key_hash": _key_hash(provided_key)})


async def verify_api_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency for API key authentication.

    Usage:
        @router.get("/protected", dependencies=[Depends(verify_api_key)])
    """
    validate_api_key(x_api_key)
