"""
Document-store Message Queue

A message queue built on a database's atomic conditional update, with
visibility-timeout leases, explicit acknowledgement, lease extension and
dead-letter hand-off. No broker process is involved.
"""

__version__ = "1.0.0"

from docqueue.errors import QueueError, StoreError, UnidentifiedAckError, ValidationError  # noqa: E402
from docqueue.queue import Queue  # noqa: E402
from docqueue.types.message import Message  # noqa: E402

__all__ = [
    "Queue",
    "Message",
    "QueueError",
    "ValidationError",
    "UnidentifiedAckError",
    "StoreError",
]
