"""
SQLAlchemy database models.
Defines the messages table backing every named queue.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MessageDocument(Base):
    """
    One queue entry.

    Rows of a queue share the same ``queue`` value. Claimability is a pure
    function of the stored timestamps:

    - available: deleted_at IS NULL and visible_at <= now
    - leased: deleted_at IS NULL, ack IS NOT NULL and visible_at > now
    - done: deleted_at IS NOT NULL (kept until the queue is cleaned)

    The unique index on ``ack`` is what keeps two consumers from holding the
    same lease. NULL tokens never collide, so unleased rows are not indexed
    against each other.
    """

    __tablename__ = "messages"

    # Primary key, monotonic in insertion order
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    queue: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    payload: Mapped[Any] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    # Lease management
    visible_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    ack: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    tries: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Soft delete
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        # Availability scans and claims
        Index("ix_messages_queue_deleted_visible", "queue", "deleted_at", "visible_at"),
        # One live holder per ack token
        Index("ix_messages_ack", "ack", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"MessageDocument(id={self.id}, queue={self.queue}, "
            f"tries={self.tries}, visible_at={self.visible_at})"
        )
