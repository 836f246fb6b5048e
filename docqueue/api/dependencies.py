"""
FastAPI dependencies wiring queues to the process session factory.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docqueue.config import get_settings
from docqueue.db.connection import get_sessionmaker, session_scope
from docqueue.queue import Queue


def get_sessions() -> async_sessionmaker[AsyncSession]:
    """Session factory for request handlers. Overridden in tests."""
    return get_sessionmaker()


Sessions = Annotated[async_sessionmaker[AsyncSession], Depends(get_sessions)]


async def get_session(sessions: Sessions) -> AsyncGenerator[AsyncSession]:
    """
    Dependency for getting async database sessions.

    Yields:
        AsyncSession: A session committed when the request succeeds.
    """
    async with session_scope(sessions) as session:
        yield session


def get_queue(
    sessions: Sessions,
    name: Annotated[str, Path(min_length=1, max_length=255)],
) -> Queue:
    """
    Build the queue named in the request path.

    When ``dead_queue_suffix`` is configured, ``<name><suffix>`` becomes the
    queue's dead-letter queue (dead queues themselves get none).
    """
    settings = get_settings()
    suffix = settings.dead_queue_suffix

    dead_queue = None
    if suffix and not name.endswith(suffix):
        dead_queue = Queue(sessions, f"{name}{suffix}")

    return Queue(sessions, name, dead_queue=dead_queue)


QueueDep = Annotated[Queue, Depends(get_queue)]
