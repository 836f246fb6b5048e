"""
Pytest configuration and shared fixtures.
"""

import os
from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from docqueue.api.dependencies import get_sessions
from docqueue.api.main import create_app
from docqueue.db.connection import create_sessionmaker, get_test_engine, session_scope
from docqueue.db.models import MessageDocument
from docqueue.db.repository import MessageRepository
from docqueue.queue import Queue

# Run against a real server (e.g. PostgreSQL) when set; otherwise every test
# gets its own SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest.fixture
def database_url(tmp_path) -> str:
    """Get the test database URL."""
    if TEST_DATABASE_URL:
        return TEST_DATABASE_URL
    return f"sqlite+aiosqlite:///{tmp_path / 'docqueue.db'}"


@pytest_asyncio.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async database engine for tests."""
    engine = get_test_engine(database_url)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def sessions(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory over a database with an empty message table."""
    factory = create_sessionmaker(async_engine)

    async with session_scope(factory) as session:
        await MessageRepository(session, "setup").create_indexes()
        await session.execute(delete(MessageDocument))

    return factory


@pytest.fixture
def queue_name() -> str:
    """Generate a unique queue name."""
    return f"test-queue-{uuid4().hex[:8]}"


@pytest.fixture
def queue(sessions: async_sessionmaker[AsyncSession], queue_name: str) -> Queue:
    """A queue with default settings."""
    return Queue(sessions, queue_name)


@pytest.fixture
def app(sessions: async_sessionmaker[AsyncSession]) -> FastAPI:
    """Create a FastAPI app wired to the test database."""
    app = create_app()
    app.dependency_overrides[get_sessions] = lambda: sessions
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
