"""
Message queue with visibility-timeout leases.

The queue keeps no state between calls beyond its configuration. Every
decision is made by the database at the moment of the call, so any number
of producer and consumer processes may share one queue.

Lifecycle of a message:

- add: visible at ``now + delay`` (or at an absolute instant)
- get: claimed atomically; ``tries`` + 1, fresh ack token, hidden for the
  visibility window
- ping: lease extended, ``tries`` untouched
- ack: soft-deleted
- lease expiry: nothing happens; the message simply matches ``get`` again
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence

from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docqueue.config import get_settings
from docqueue.constants import (
    ACK_TOKEN_BYTES,
    DEAD_LETTER_ERROR,
    SPAN_ACK,
    SPAN_ADD,
    SPAN_GET,
    SPAN_PING,
    MessageState,
)
from docqueue.db.connection import session_scope
from docqueue.db.models import MessageDocument
from docqueue.db.repository import (
    MessageRepository,
    available_filter,
    claim_filter,
    done_filter,
    in_flight_filter,
    lease_filter,
)
from docqueue.errors import UnidentifiedAckError, ValidationError
from docqueue.observability.metrics import get_metrics
from docqueue.observability.tracing import get_tracer
from docqueue.types.message import Message

logger = logging.getLogger(__name__)

Delay = int | float | timedelta | datetime


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_ack_token() -> str:
    """Random lease credential."""
    return secrets.token_hex(ACK_TOKEN_BYTES)


def _seconds(value: int | float | timedelta) -> timedelta:
    if isinstance(value, timedelta):
        return value
    return timedelta(seconds=value)


class Queue:
    """
    A named queue of messages stored in the messages table.

    Args:
        sessions: Session factory used for every operation. Several queues
            may share one.
        name: Queue name; rows of different queues never mix.
        visibility: Lease duration in seconds (default from settings, 30).
        delay: Default initial invisibility in seconds (default 0).
        dead_queue: Queue receiving messages that exceeded ``max_retries``.
        max_retries: Claims allowed before dead-lettering (default 5). Only
            used together with ``dead_queue``.

    Raises:
        ValidationError: If the session factory or the name is missing.
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        name: str,
        *,
        visibility: int | float | None = None,
        delay: Delay | None = None,
        dead_queue: "Queue | None" = None,
        max_retries: int | None = None,
    ):
        if sessions is None:
            raise ValidationError("Queue(): provide a database session factory")
        if not name:
            raise ValidationError("Queue(): provide a queue name")

        settings = get_settings()

        self._sessions = sessions
        self.name = name
        self.visibility = (
            visibility if visibility is not None else settings.queue_visibility_seconds
        )
        self.delay = delay if delay is not None else settings.queue_delay_seconds

        self.dead_queue = dead_queue
        self.max_retries: int | None = None
        if dead_queue is not None:
            self.max_retries = (
                max_retries if max_retries is not None else settings.queue_max_retries
            )

        self._metrics = get_metrics()

    def __repr__(self) -> str:
        dead = self.dead_queue.name if self.dead_queue is not None else None
        return f"Queue(name={self.name!r}, visibility={self.visibility}, dead_queue={dead!r})"

    async def create_indexes(self) -> list[str]:
        """
        Create the message table and its indexes if missing.

        Returns:
            Index names.
        """
        async with session_scope(self._sessions) as session:
            names = await MessageRepository(session, self.name).create_indexes()

        logger.info("Queue indexes ready", extra={"queue": self.name})
        return names

    def _visible_at(self, delay: Delay) -> datetime:
        if isinstance(delay, datetime):
            if delay.tzinfo is None:
                return delay.replace(tzinfo=timezone.utc)
            return delay.astimezone(timezone.utc)
        if isinstance(delay, bool) or not isinstance(delay, (int, float, timedelta)):
            raise ValidationError(
                f"Queue.add(): delay must be seconds or a datetime, got {delay!r}"
            )
        return utcnow() + _seconds(delay)

    async def add(
        self,
        payload: Any,
        *,
        delay: Delay | None = None,
    ) -> str | list[str]:
        """
        Add one message, or one message per item of a list.

        Batches go in as a single insert, but callers should not rely on
        all-or-nothing behaviour across a batch.

        Args:
            payload: Any JSON-serialisable value. A list is a batch.
            delay: Seconds (or timedelta) before the message becomes
                visible, or the absolute instant it does. Overrides the
                queue default.

        Returns:
            The message id, or the list of ids for a batch, in order.

        Raises:
            ValidationError: If a batch is empty or the delay is invalid.
        """
        batch = isinstance(payload, list)
        payloads = payload if batch else [payload]
        if not payloads:
            raise ValidationError("Queue.add(): list payload must not be empty")

        visible_at = self._visible_at(self.delay if delay is None else delay)
        documents = [
            {"payload": item, "visible_at": visible_at, "tries": 0}
            for item in payloads
        ]

        with get_tracer().start_as_current_span(SPAN_ADD) as span:
            span.set_attribute("queue", self.name)
            span.set_attribute("message_count", len(documents))

            async with session_scope(self._sessions) as session:
                ids = await MessageRepository(session, self.name).insert_many(documents)

        self._metrics.record_messages_added(self.name, len(ids))

        ids = [str(message_id) for message_id in ids]
        return ids if batch else ids[0]

    async def get(self, *, visibility: int | float | None = None) -> Message | None:
        """
        Lease the oldest available message.

        When a dead queue is configured, messages claimed more than
        ``max_retries`` times are forwarded there, retired here, and
        the claim is retried. Each retry removes one message from the
        backlog, so the loop ends once a live message is found or the
        queue is drained.

        Args:
            visibility: Lease duration for this claim, in seconds.

        Returns:
            The leased message, or None if nothing is available.
        """
        visibility = self.visibility if visibility is None else visibility

        with get_tracer().start_as_current_span(SPAN_GET) as span:
            span.set_attribute("queue", self.name)

            while True:
                message = await self._claim(visibility)
                if message is None:
                    return None

                if self.dead_queue is None or message.tries <= self.max_retries:
                    span.set_attribute("message_id", message.id)
                    span.set_attribute("tries", message.tries)
                    return message

                await self._dead_letter(message)

    async def _claim(self, visibility: int | float) -> Message | None:
        now = utcnow()
        values = {
            "tries": MessageDocument.tries + 1,
            "ack": new_ack_token(),
            "visible_at": now + _seconds(visibility),
        }

        async with session_scope(self._sessions) as session:
            repo = MessageRepository(session, self.name)
            document = await repo.find_one_and_update(
                available_filter(now), values, oldest=True
            )
            if document is None:
                return None
            message = Message.from_document(document)

        self._metrics.record_message_leased(self.name)
        logger.debug(
            "Leased message",
            extra={"queue": self.name, "message_id": message.id, "tries": message.tries}
        )
        return message

    async def _dead_letter(self, message: Message) -> None:
        # A failing forward leaves the lease in place; the message comes
        # back once it expires.
        logger.warning(
            f"Message exceeded {self.max_retries} retries, forwarding to dead queue",
            extra={
                "queue": self.name,
                "dead_queue": self.dead_queue.name,
                "message_id": message.id,
                "tries": message.tries,
            }
        )
        await self.dead_queue.add(message.model_dump())

        # Matched on the token alone: the claim may already be past its
        # visibility window (e.g. visibility=0).
        async with session_scope(self._sessions) as session:
            repo = MessageRepository(session, self.name)
            document = await repo.find_one_and_update(
                claim_filter(message.ack),
                {"deleted_at": utcnow(), "error": DEAD_LETTER_ERROR},
            )

        if document is None:
            logger.warning(
                "Message reclaimed before it could be retired, it will be forwarded again",
                extra={"queue": self.name, "message_id": message.id}
            )
            return

        self._metrics.record_message_dead_lettered(self.name)

    async def ping(self, ack: str, *, visibility: int | float | None = None) -> str:
        """
        Extend a live lease by the visibility window, measured from now.

        Args:
            ack: The token returned by ``get``.
            visibility: Extension in seconds (default: queue visibility).

        Returns:
            The message id.

        Raises:
            UnidentifiedAckError: If the token is unknown or its lease expired.
        """
        visibility = self.visibility if visibility is None else visibility
        now = utcnow()

        with get_tracer().start_as_current_span(SPAN_PING) as span:
            span.set_attribute("queue", self.name)

            async with session_scope(self._sessions) as session:
                repo = MessageRepository(session, self.name)
                document = await repo.find_one_and_update(
                    lease_filter(ack, now),
                    {"visible_at": now + _seconds(visibility)},
                )
                if document is None:
                    self._metrics.record_unidentified_ack(self.name, "ping")
                    raise UnidentifiedAckError("ping", ack)
                message_id = str(document.id)

        logger.debug("Extended lease", extra={"queue": self.name, "message_id": message_id})
        return message_id

    async def ack(self, ack: str, error: str | None = None) -> str:
        """
        Acknowledge a leased message, marking it done.

        Args:
            ack: The token returned by ``get``.
            error: Optional note stored with the message.

        Returns:
            The message id.

        Raises:
            UnidentifiedAckError: If the token is unknown, its lease expired,
                or the message was already acknowledged.
        """
        now = utcnow()
        values: dict[str, Any] = {"deleted_at": now}
        if error:
            values["error"] = error

        with get_tracer().start_as_current_span(SPAN_ACK) as span:
            span.set_attribute("queue", self.name)

            async with session_scope(self._sessions) as session:
                repo = MessageRepository(session, self.name)
                document = await repo.find_one_and_update(lease_filter(ack, now), values)
                if document is None:
                    self._metrics.record_unidentified_ack(self.name, "ack")
                    raise UnidentifiedAckError("ack", ack)
                message_id = str(document.id)

        self._metrics.record_message_acked(self.name)
        logger.debug("Acknowledged message", extra={"queue": self.name, "message_id": message_id})
        return message_id

    async def _count(self, filters: Sequence[ColumnElement[bool]] = ()) -> int:
        async with session_scope(self._sessions) as session:
            return await MessageRepository(session, self.name).count_documents(filters)

    async def total(self) -> int:
        """Number of messages in any state."""
        return await self._count()

    async def size(self) -> int:
        """Number of messages available to ``get`` right now."""
        return await self._count(available_filter(utcnow()))

    async def in_flight(self) -> int:
        """Number of messages under an unexpired lease."""
        return await self._count(in_flight_filter(utcnow()))

    async def done(self) -> int:
        """Number of acknowledged messages not yet cleaned."""
        return await self._count(done_filter())

    async def clean(self) -> int:
        """
        Permanently remove acknowledged messages.

        Returns:
            Number of removed messages.
        """
        async with session_scope(self._sessions) as session:
            return await MessageRepository(session, self.name).delete_many(done_filter())

    async def stats(self) -> dict[str, int]:
        """
        Count messages by state.

        Returns:
            Mapping with ``total`` and one entry per MessageState.
        """
        stats = {
            "total": await self.total(),
            MessageState.AVAILABLE.value: await self.size(),
            MessageState.LEASED.value: await self.in_flight(),
            MessageState.DONE.value: await self.done(),
        }
        for state in MessageState:
            self._metrics.update_queue_messages(self.name, state.value, stats[state.value])
        return stats
