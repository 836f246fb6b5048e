"""
Worker module.
Contains the polling consumer and the message handler registry.
"""

from docqueue.worker.handlers import dispatch_message, register_handler
from docqueue.worker.main import Worker, run

__all__ = ["Worker", "run", "register_handler", "dispatch_message"]
