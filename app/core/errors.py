"""Application-level exception types.

This module defines domain errors used across services/repositories, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes stable across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    resource: str
    identifier: str | int
    user_name: str
    injection_type: str
    date: str
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input validation fails."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class NotFoundAppError(AppError):
    """Raised when a requested record does not exist."""


class ConflictAppError(AppError):
    """Raised when a write would duplicate an existing record."""


class DatabaseAppError(AppError):
    """Raised when the relational store fails."""
