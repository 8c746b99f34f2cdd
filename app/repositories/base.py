"""Shared repository plumbing."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import DatabaseAppError

logger = logging.getLogger(__name__)


class SessionRepository:
    """Base class holding the request-scoped session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Roll back and translate driver errors into DatabaseAppError."""
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error(
                "database.error",
                extra={
                    "action": action,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc)[:200],
                },
            )
            raise DatabaseAppError(
                code="database_error",
                message=f"Failed to {action}",
            ) from exc
