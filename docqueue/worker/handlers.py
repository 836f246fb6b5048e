"""
Message handlers registry and implementations.

Handlers must be idempotent: delivery is at-least-once, so a message whose
lease lapsed mid-processing is handed to another consumer and runs again.
A handler signals failure by raising; the message is then left to expire
and be redelivered.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from docqueue.types.message import Message

logger = logging.getLogger(__name__)

# Type alias for message handler functions
MessageHandler = Callable[[Message], Awaitable[Any]]

# Handler registry, keyed by the payload's "type" field
_handlers: dict[str, MessageHandler] = {}


class UnknownMessageType(LookupError):
    """No handler is registered for a message's type."""


def register_handler(message_type: str) -> Callable[[MessageHandler], MessageHandler]:
    """
    Decorator to register a message handler.

    Args:
        message_type: The ``payload["type"]`` value this handler processes.

    Returns:
        Decorator function.

    Example:
        @register_handler("send_email")
        async def handle_send_email(message: Message) -> None:
            ...
    """
    def decorator(handler: MessageHandler) -> MessageHandler:
        _handlers[message_type] = handler
        logger.debug(f"Registered handler for message type: {message_type}")
        return handler
    return decorator


def get_handler(message_type: str) -> MessageHandler | None:
    """Get the handler for a message type, or None."""
    return _handlers.get(message_type)


def list_handlers() -> list[str]:
    """List all registered message types."""
    return list(_handlers.keys())


def message_type(message: Message) -> str | None:
    """The ``type`` field of a dict payload, if any."""
    if isinstance(message.payload, dict):
        return message.payload.get("type")
    return None


async def dispatch_message(message: Message) -> Any:
    """
    Run the handler registered for a message's type.

    Args:
        message: The leased message.

    Returns:
        Whatever the handler returns.

    Raises:
        UnknownMessageType: If no handler matches.
    """
    kind = message_type(message)
    handler = get_handler(kind) if kind is not None else None
    if handler is None:
        raise UnknownMessageType(f"No handler registered for message type: {kind!r}")
    return await handler(message)


# ============================================================================
# Built-in message handlers
# ============================================================================


@register_handler("echo")
async def handle_echo(message: Message) -> Any:
    """Log and return the payload's ``data``."""
    data = message.payload.get("data")
    logger.info(
        "Echo message",
        extra={"message_id": message.id, "tries": message.tries, "data": data}
    )
    return data


@register_handler("sleep")
async def handle_sleep(message: Message) -> None:
    """Sleep for ``data.seconds`` (default 1). Useful to exercise heartbeats."""
    data = message.payload.get("data") or {}
    seconds = float(data.get("seconds", 1))
    await asyncio.sleep(seconds)


@register_handler("fail")
async def handle_fail(message: Message) -> None:
    """Always fail. Useful to exercise redelivery and dead-lettering."""
    raise RuntimeError(f"Message {message.id} failed on try {message.tries}")
