"""
Type definitions for the queue.
Contains the external message form and the API request/response models.
"""

from docqueue.types.api import (
    AckRequest,
    AddMessagesRequest,
    AddMessagesResponse,
    CleanResponse,
    HealthResponse,
    LeaseRequest,
    MessageIdResponse,
    QueueStatsResponse,
)
from docqueue.types.message import Message

__all__ = [
    # API types
    "AddMessagesRequest",
    "AddMessagesResponse",
    "LeaseRequest",
    "AckRequest",
    "MessageIdResponse",
    "QueueStatsResponse",
    "CleanResponse",
    "HealthResponse",
    # Message types
    "Message",
]
