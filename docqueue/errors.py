"""
Queue exception types.

Store failures are not wrapped: whatever SQLAlchemy raises reaches the
caller unchanged. ``StoreError`` names that family for callers that want to
catch it.
"""

from sqlalchemy.exc import SQLAlchemyError

StoreError = SQLAlchemyError


class QueueError(Exception):
    """Base class for errors raised by the queue itself."""


class ValidationError(QueueError, ValueError):
    """Invalid construction arguments or operation input."""


class UnidentifiedAckError(QueueError):
    """
    Raised by ping/ack when no live lease matches the token.

    A wrong token and a token whose lease already expired look the same:
    once a lease lapses its token is dead.
    """

    def __init__(self, operation: str, ack: str):
        self.operation = operation
        self.ack = ack
        super().__init__(f"Queue.{operation}(): Unidentified ack : {ack}")
