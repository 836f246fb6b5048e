"""
Queue message routes.
"""

import logging

from fastapi import APIRouter, HTTPException, Response, status

from docqueue.api.dependencies import QueueDep
from docqueue.constants import API_V1_PREFIX
from docqueue.errors import UnidentifiedAckError, ValidationError
from docqueue.types.api import (
    AckRequest,
    AddMessagesRequest,
    AddMessagesResponse,
    CleanResponse,
    LeaseRequest,
    MessageIdResponse,
    QueueStatsResponse,
)
from docqueue.types.message import Message

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_V1_PREFIX}/queues/{{name}}", tags=["Queues"])


@router.post(
    "/messages",
    response_model=AddMessagesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add messages",
    description="Add one message, or one message per item of `payloads`.",
)
async def add_messages(
    request: AddMessagesRequest,
    queue: QueueDep,
) -> AddMessagesResponse:
    """
    Add messages to a queue.

    Args:
        request: Payload(s) and optional delay.
        queue: The queue named in the path.

    Returns:
        AddMessagesResponse with the new ids, in order.

    Raises:
        HTTPException: If the batch is empty or the delay is invalid.
    """
    payload = request.payloads if request.payloads is not None else request.payload

    try:
        ids = await queue.add(payload, delay=request.delay)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

    return AddMessagesResponse(ids=ids if isinstance(ids, list) else [ids])


@router.post(
    "/messages/lease",
    response_model=Message,
    summary="Lease a message",
    description="Claim the oldest available message. Returns 204 when the queue is empty.",
    responses={204: {"description": "No message available"}},
)
async def lease_message(
    queue: QueueDep,
    request: LeaseRequest | None = None,
) -> Message | Response:
    """
    Lease the oldest available message.

    Args:
        queue: The queue named in the path.
        request: Optional lease duration.

    Returns:
        The leased message, or an empty 204 response.
    """
    visibility = request.visibility if request is not None else None
    message = await queue.get(visibility=visibility)

    if message is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return message


@router.post(
    "/messages/{ack}/ping",
    response_model=MessageIdResponse,
    summary="Extend a lease",
    description="Push the lease of a message forward by the visibility window.",
)
async def ping_message(
    ack: str,
    queue: QueueDep,
    request: LeaseRequest | None = None,
) -> MessageIdResponse:
    """
    Extend a live lease.

    Raises:
        HTTPException: If the token is unknown or its lease expired.
    """
    visibility = request.visibility if request is not None else None

    try:
        message_id = await queue.ping(ack, visibility=visibility)
    except UnidentifiedAckError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return MessageIdResponse(id=message_id)


@router.post(
    "/messages/{ack}/ack",
    response_model=MessageIdResponse,
    summary="Acknowledge a message",
    description="Mark a leased message as done.",
)
async def ack_message(
    ack: str,
    queue: QueueDep,
    request: AckRequest | None = None,
) -> MessageIdResponse:
    """
    Acknowledge a leased message.

    Raises:
        HTTPException: If the token is unknown, expired or already used.
    """
    error = request.error if request is not None else None

    try:
        message_id = await queue.ack(ack, error)
    except UnidentifiedAckError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

    return MessageIdResponse(id=message_id)


@router.get(
    "/stats",
    response_model=QueueStatsResponse,
    summary="Queue statistics",
    description="Count messages by state.",
)
async def queue_stats(queue: QueueDep) -> QueueStatsResponse:
    """Get message counts for a queue."""
    stats = await queue.stats()
    return QueueStatsResponse(queue=queue.name, **stats)


@router.delete(
    "/messages/done",
    response_model=CleanResponse,
    summary="Remove acknowledged messages",
    description="Permanently delete every acknowledged message of the queue.",
)
async def clean_queue(queue: QueueDep) -> CleanResponse:
    """Purge acknowledged messages."""
    removed = await queue.clean()

    logger.info(
        "Cleaned queue",
        extra={"queue": queue.name, "removed": removed}
    )

    return CleanResponse(removed=removed)
