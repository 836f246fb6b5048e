"""
Message repository for database operations.
Implements the document-store primitives the queue is built on.
"""

import logging
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import ColumnElement, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from docqueue.db.models import MessageDocument

logger = logging.getLogger(__name__)


def available_filter(now: datetime) -> list[ColumnElement[bool]]:
    """Messages that may be claimed at ``now``."""
    return [
        MessageDocument.deleted_at.is_(None),
        MessageDocument.visible_at <= now,
    ]


def in_flight_filter(now: datetime) -> list[ColumnElement[bool]]:
    """Messages currently held under an unexpired lease."""
    return [
        MessageDocument.ack.is_not(None),
        MessageDocument.visible_at > now,
        MessageDocument.deleted_at.is_(None),
    ]


def lease_filter(ack: str, now: datetime) -> list[ColumnElement[bool]]:
    """The message held under ``ack``, if that lease is still live."""
    return [
        MessageDocument.ack == ack,
        MessageDocument.visible_at > now,
        MessageDocument.deleted_at.is_(None),
    ]


def claim_filter(ack: str) -> list[ColumnElement[bool]]:
    """The unacknowledged message last claimed under ``ack``, expired or not."""
    return [
        MessageDocument.ack == ack,
        MessageDocument.deleted_at.is_(None),
    ]


def done_filter() -> list[ColumnElement[bool]]:
    """Acknowledged (soft-deleted) messages."""
    return [MessageDocument.deleted_at.is_not(None)]


class MessageRepository:
    """
    Repository for message database operations, scoped to one queue.

    Provides the store primitives:
    - insert_many: order-preserving bulk insert
    - find_one_and_update: atomic conditional update returning the new row
    - delete_many / count_documents
    - create_indexes: idempotent table and index setup

    Each call runs on the session it was given; the caller owns the
    transaction.
    """

    def __init__(self, session: AsyncSession, queue: str):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
            queue: Name of the queue whose rows this repository sees.
        """
        self._session = session
        self._queue = queue

    async def create_indexes(self) -> list[str]:
        """
        Create the message table and its indexes if they are missing.

        Safe to call any number of times, from any number of processes.

        Returns:
            Names of the indexes on the message table.
        """
        table = MessageDocument.__table__
        conn = await self._session.connection()
        await conn.run_sync(lambda sync_conn: table.create(sync_conn, checkfirst=True))
        for index in sorted(table.indexes, key=lambda ix: ix.name):
            await conn.run_sync(
                lambda sync_conn, index=index: index.create(sync_conn, checkfirst=True)
            )
        return sorted(index.name for index in table.indexes)

    async def insert_many(self, documents: Sequence[dict[str, Any]]) -> list[int]:
        """
        Insert documents into the queue.

        Args:
            documents: Column values for each new row (``queue`` is filled in).

        Returns:
            Store-assigned ids, in the order of ``documents``.
        """
        rows = [{**document, "queue": self._queue} for document in documents]
        stmt = insert(MessageDocument).returning(
            MessageDocument.id, sort_by_parameter_order=True
        )
        result = await self._session.execute(stmt, rows)
        ids = list(result.scalars().all())

        logger.debug(
            f"Inserted {len(ids)} messages",
            extra={"queue": self._queue, "message_count": len(ids)}
        )
        return ids

    async def find_one_and_update(
        self,
        filters: Sequence[ColumnElement[bool]],
        values: dict[str, Any],
        oldest: bool = False,
    ) -> MessageDocument | None:
        """
        Atomically update one matching message and return its new state.

        With ``oldest`` the smallest matching id is chosen inside the same
        statement (``UPDATE ... WHERE id = (SELECT ... FOR UPDATE SKIP LOCKED)``),
        so concurrent callers can never pick the same row.

        Args:
            filters: Conditions the row must satisfy.
            values: Column values to set.
            oldest: Restrict the update to the oldest matching row.

        Returns:
            The updated row, or None if nothing matched.
        """
        conditions = [MessageDocument.queue == self._queue, *filters]

        if oldest:
            target = (
                select(MessageDocument.id)
                .where(*conditions)
                .order_by(MessageDocument.id)
                .limit(1)
                .with_for_update(skip_locked=True)
                .scalar_subquery()
            )
            conditions = [MessageDocument.id == target]

        stmt = (
            update(MessageDocument)
            .where(*conditions)
            .values(**values)
            .returning(MessageDocument)
            .execution_options(synchronize_session=False)
        )

        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_many(self, filters: Sequence[ColumnElement[bool]]) -> int:
        """
        Physically remove matching messages.

        Returns:
            Number of removed rows.
        """
        stmt = (
            delete(MessageDocument)
            .where(MessageDocument.queue == self._queue, *filters)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        count = result.rowcount

        if count > 0:
            logger.info(
                f"Removed {count} messages",
                extra={"queue": self._queue}
            )

        return count

    async def count_documents(
        self,
        filters: Sequence[ColumnElement[bool]] = (),
    ) -> int:
        """Count messages of the queue matching ``filters``."""
        stmt = (
            select(func.count())
            .select_from(MessageDocument)
            .where(MessageDocument.queue == self._queue, *filters)
        )
        result = await self._session.execute(stmt)
        return result.scalar() or 0

    async def get_document(self, message_id: int) -> MessageDocument | None:
        """
        Get a message row by id.

        Args:
            message_id: The store-assigned id.

        Returns:
            The row or None if not found in this queue.
        """
        stmt = select(MessageDocument).where(
            MessageDocument.queue == self._queue,
            MessageDocument.id == message_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()
