"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports ``app.core.config``
so the global settings never read a developer's .env file or database.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["DB_URL"] = "sqlite://"

# Set default env vars that all tests might need
os.environ.setdefault("APP_TIMEZONE", "UTC")
os.environ.setdefault("APP_API_KEY_REQUIRED", "false")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.app_factory import create_app
from app.core.rate_limit import reset_rate_limiters
from app.db import connection
from app.services.stats_service import invalidate_stats_cache


@pytest.fixture
def app() -> Iterator[FastAPI]:
    """Fresh application with an empty in-memory database."""
    reset_rate_limiters()
    invalidate_stats_cache()
    yield create_app()
    reset_rate_limiters()
    invalidate_stats_cache()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session(app: FastAPI) -> Iterator[Session]:
    """Session bound to the same in-memory database the app uses."""
    session = connection.SessionLocal()
    try:
        yield session
    finally:
        session.close()
