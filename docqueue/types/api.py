"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator


class AddMessagesRequest(BaseModel):
    """Request body for adding messages. Exactly one of payload/payloads."""

    payload: Any = Field(default=None, description="Single message payload")
    payloads: list[Any] | None = Field(
        default=None, description="Batch of payloads, one message each"
    )
    delay: float | datetime | None = Field(
        default=None,
        description="Seconds before the messages become visible, or an absolute instant",
    )

    @model_validator(mode="after")
    def _one_of_payload_or_payloads(self) -> "AddMessagesRequest":
        if self.payloads is not None and "payload" in self.model_fields_set:
            raise ValueError("give either payload or payloads, not both")
        return self


class AddMessagesResponse(BaseModel):
    """Response body after adding messages."""

    ids: list[str]


class LeaseRequest(BaseModel):
    """Request body for claiming or extending a lease."""

    visibility: float | None = Field(
        default=None, ge=0, description="Lease duration in seconds"
    )


class AckRequest(BaseModel):
    """Request body for acknowledging a message."""

    error: str | None = Field(default=None, description="Optional note kept with the message")


class MessageIdResponse(BaseModel):
    """Id of the message a ping or ack applied to."""

    id: str


class QueueStatsResponse(BaseModel):
    """Message counts for one queue."""

    queue: str
    total: int
    available: int
    leased: int
    done: int


class CleanResponse(BaseModel):
    """Number of acknowledged messages removed."""

    removed: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime

