"""
Pytest configuration and fixtures for the storefront public access tests.

Provides common fixtures for:
- A frozen, advanceable clock
- In-memory and SQLite-backed token stores
- The token service wired to those
- A test client with the service dependency overridden
"""

import os

# Settings are read once at import time, so the environment must be set first
os.environ["ENVIRONMENT"] = "test"
os.environ["TOKEN_STORE"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TOKEN_CLEANUP_ENABLED"] = "false"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from storefront.api.deps import get_access_token_service
from storefront.core.security_events import SecurityEventLogger
from storefront.db.session import Base
from storefront.integrations.adapters.database import DatabaseTokenStore
from storefront.integrations.adapters.memory import InMemoryTokenStore
from storefront.main import app
from storefront.services.public_access_tokens import PublicAccessTokenService

import storefront.models  # noqa: F401

ADMIN_KEY = "test-admin-key"


# =============================================================================
# Clock
# =============================================================================


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float = 0, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(hours=hours, minutes=minutes, seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at a fixed UTC instant."""
    return FrozenClock(datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))


# =============================================================================
# Stores and Service
# =============================================================================


@pytest.fixture
def memory_store() -> InMemoryTokenStore:
    """Fresh in-memory token store."""
    return InMemoryTokenStore()


@pytest.fixture
def events() -> MagicMock:
    """Security event logger spy."""
    return MagicMock(spec=SecurityEventLogger)


@pytest.fixture
def service(memory_store, clock, events) -> PublicAccessTokenService:
    """Token service over the in-memory store and frozen clock."""
    return PublicAccessTokenService(memory_store, clock=clock, events=events)


# Use SQLite for tests (faster, no external dependencies)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(async_engine) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to the test engine."""
    yield async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def db_store(session_factory) -> DatabaseTokenStore:
    """Token store on the SQLite test database.

    StaticPool shares one connection across sessions; use file_session_factory
    for tests that need concurrent writers.
    """
    return DatabaseTokenStore(session_factory)


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a file-backed SQLite database.

    NullPool gives every session its own connection, so concurrent store calls
    really do race each other at the database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    await engine.dispose()


# =============================================================================
# Test Client Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def client(service) -> Generator[TestClient, None, None]:
    """Test client whose endpoints use the fixture service."""
    app.dependency_overrides[get_access_token_service] = lambda: service

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    """Headers for the admin API."""
    return {"X-Admin-Key": ADMIN_KEY}
