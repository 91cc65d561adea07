"""Shared pytest fixtures and configuration."""

from typing import Generator
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import all models to ensure they're registered with SQLAlchemy
import app.models  # noqa: F401
from app.core.database import Base
from app.core.dependencies import get_db
from app.main import app
from tests.helpers import OTHER_OWNER_ID, OWNER_ID, make_access_token

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_engine():
    return create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        # Sessions share one connection; closing one must not roll back another
        pool_reset_on_return=None,
    )


def make_session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_test_db(engine) -> None:
    """Initialize test database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
async def test_async_engine():
    """Create a fresh in-memory database for one test."""
    engine = make_engine()
    await init_test_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_async_engine) -> async_sessionmaker:
    """Session factory bound to the test database."""
    return make_session_factory(test_async_engine)


@pytest.fixture
async def test_async_session(session_factory):
    """Create test async database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def auth_headers() -> dict:
    """Bearer token headers for the default owner."""
    token = make_access_token({"sub": OWNER_ID})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers() -> dict:
    """Bearer token headers for a second owner."""
    token = make_access_token({"sub": OTHER_OWNER_ID})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def mock_task_queue():
    """Task queue that records submissions without running them."""
    queue = Mock()
    queue.submit = AsyncMock(return_value="task-1")
    queue.cancel_pending = Mock(return_value=0)
    with patch("app.services.sync_job_service.get_task_queue", return_value=queue):
        yield queue


@pytest.fixture
def client_engine():
    """Engine of the database behind the test client."""
    return make_engine()


@pytest.fixture
def client_session_factory(client_engine) -> async_sessionmaker:
    """Session factory shared by the test client and test setup code."""
    return make_session_factory(client_engine)


@pytest.fixture
def test_client(
    client_engine, client_session_factory, mock_task_queue
) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""

    async def override_get_db():
        async with client_session_factory() as session:
            yield session

    # Override dependency
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        # Create tables on the client's event loop
        client.portal.call(init_test_db, client_engine)
        yield client
        client.portal.call(client_engine.dispose)

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def anyio_backend():
    """Configure anyio for pytest-asyncio."""
    return "asyncio"


@pytest.fixture
def fast_async():
    """Make all async sleep calls instant for faster tests."""
    with patch("asyncio.sleep", new_callable=AsyncMock):
        yield
