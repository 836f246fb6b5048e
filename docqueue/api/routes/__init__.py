"""
API routes module.
"""

from docqueue.api.routes.health import router as health_router
from docqueue.api.routes.queues import router as queues_router

__all__ = ["queues_router", "health_router"]
