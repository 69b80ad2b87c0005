"""
Shared fixtures for the test suite.

Applications are built with in-memory stand-ins for the database and
Redis connections, so no test needs a running server.
"""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI

from app.core.config import Settings
from app.infrastructure.cache import RedisConnection
from app.infrastructure.database import DatabaseConnection
from app.main import create_app


def make_settings(**overrides) -> Settings:
    """Settings with required values filled in and rate limiting off."""
    values = {
        "environment": "production",
        "mongodb_uri": "mongodb://db.test:27017/starter",
        "jwt_secret": "test-secret",
        "rate_limit_enabled": False,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def fake_database() -> MagicMock:
    database = MagicMock(spec=DatabaseConnection)
    database.connect = AsyncMock()
    database.disconnect = AsyncMock()
    database.status = "connected"
    return database


@pytest.fixture
def fake_cache() -> MagicMock:
    cache = MagicMock(spec=RedisConnection)
    cache.connect = AsyncMock()
    cache.disconnect = AsyncMock()
    cache.status = "ready"
    return cache


@pytest.fixture
def build_app(fake_database, fake_cache) -> Callable[..., FastAPI]:
    """Factory building an app wired to the fake connections."""

    def _build(**overrides) -> FastAPI:
        return create_app(
            make_settings(**overrides), database=fake_database, cache=fake_cache
        )

    return _build
