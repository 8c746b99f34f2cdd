"""Database connection management."""

from __future__ import annotations

import logging
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import DatabaseSettings, settings
from app.core.errors import DatabaseAppError
from app.db.models import Base

logger = logging.getLogger(__name__)

engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # noqa: ANN001
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_database(db_settings: DatabaseSettings | None = None, *, create_tables: bool = True) -> Engine:
    """Create the engine and session factory, optionally creating tables.

    Args:
        db_settings: Database settings; defaults to the global settings.
        create_tables: Run ``create_all`` for the ORM metadata.

    Returns:
        The initialized engine.
    """

    global engine, SessionLocal

    cfg = db_settings or settings.db
    url = cfg.url

    kwargs: dict = {"echo": cfg.echo, "pool_pre_ping": cfg.pool_pre_ping}
    if _is_sqlite(url):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # One shared connection, otherwise each checkout sees an empty DB
            kwargs["poolclass"] = StaticPool

    if engine is not None:
        engine.dispose()

    engine = create_engine(url, **kwargs)
    if _is_sqlite(url):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)

    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

    if create_tables:
        Base.metadata.create_all(engine)

    logger.info(
        "database.initialized",
        extra={"dialect": engine.dialect.name, "create_tables": create_tables},
    )
    return engine


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a session that is closed after the request.

    Raises:
        DatabaseAppError: If the database has not been initialized.
    """

    if SessionLocal is None:
        raise DatabaseAppError(
            code="database_not_configured",
            message="Database not configured",
        )

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def check_database() -> bool:
    """Run a trivial query to confirm the database is reachable."""

    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.warning(
            "database.unreachable",
            extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        return False
