"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware

from docqueue import __version__
from docqueue.api.middleware import create_metrics_middleware
from docqueue.api.routes import health_router, queues_router
from docqueue.config import get_settings
from docqueue.db import close_db, get_engine, init_db
from docqueue.observability.logging import setup_logging
from docqueue.observability.metrics import setup_metrics
from docqueue.observability.tracing import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_tracing,
)
from docqueue.queue import Queue

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Initializes logging, metrics, tracing and the database; the message
    table and indexes are created if missing.
    """
    settings = get_settings()

    setup_logging()
    setup_metrics()
    if settings.otel_enabled:
        setup_tracing()
        instrument_sqlalchemy(get_engine())

    sessions = await init_db()
    await Queue(sessions, settings.worker_queue_name).create_indexes()

    logger.info("Application started")

    yield

    await close_db()
    logger.info("Application shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="docqueue API",
        description="Message queue with visibility-timeout leases over a SQL database",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        BaseHTTPMiddleware,
        dispatch=create_metrics_middleware(),
    )

    app.include_router(health_router)
    app.include_router(queues_router)

    if settings.otel_enabled:
        instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        "docqueue.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
