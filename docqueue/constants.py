"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class MessageState(StrEnum):
    """
    Message lifecycle states.

    State transitions:
    - AVAILABLE -> LEASED (get claims the message)
    - LEASED -> LEASED (ping extends the lease)
    - LEASED -> DONE (ack)
    - LEASED -> AVAILABLE (lease expired, implicit)
    - AVAILABLE -> DONE (retry budget exceeded, forwarded to the dead queue)
    """

    AVAILABLE = "available"
    LEASED = "leased"
    DONE = "done"


# Default values
DEFAULT_VISIBILITY_SECONDS = 30
DEFAULT_DELAY_SECONDS = 0
DEFAULT_MAX_RETRIES = 5

# Number of random bytes in an ack token (hex encoded to twice the length)
ACK_TOKEN_BYTES = 16

# Error recorded on a message acknowledged by the dead-letter hand-off
DEAD_LETTER_ERROR = "max tries exceeded"

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_QUEUE_MESSAGES = "queue_messages"
METRIC_MESSAGES_ADDED = "queue_messages_added_total"
METRIC_MESSAGES_LEASED = "queue_messages_leased_total"
METRIC_MESSAGES_ACKED = "queue_messages_acked_total"
METRIC_MESSAGES_DEAD_LETTERED = "queue_messages_dead_lettered_total"
METRIC_UNIDENTIFIED_ACK = "queue_unidentified_ack_total"
METRIC_API_REQUESTS = "api_requests_total"
METRIC_API_LATENCY = "api_request_latency_seconds"

# Trace span names
SPAN_ADD = "queue.add"
SPAN_GET = "queue.get"
SPAN_PING = "queue.ping"
SPAN_ACK = "queue.ack"
SPAN_HANDLE_MESSAGE = "handle_message"
