"""
Message type definitions exposed to queue callers.
"""

from typing import Any

from pydantic import BaseModel

from docqueue.db.models import MessageDocument


class Message(BaseModel):
    """
    A leased message as handed to a consumer.

    Only the lease handle and the user payload cross this boundary; the
    stored timestamps stay inside the queue.
    """

    id: str
    ack: str
    payload: Any = None
    tries: int

    @classmethod
    def from_document(cls, document: MessageDocument) -> "Message":
        """Convert a stored row to its external representation."""
        return cls(
            id=str(document.id),
            ack=document.ack,
            payload=document.payload,
            tries=document.tries,
        )
