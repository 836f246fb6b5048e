"""
Request metrics middleware.
"""

import time
from collections.abc import Callable

from fastapi import Request

from docqueue.observability.metrics import get_metrics

# Paths not worth a time series of their own
_SKIPPED_PATHS = ("/metrics", "/live")


def create_metrics_middleware() -> Callable:
    """
    Create request-metrics middleware for FastAPI.

    Requests are labelled by route template (``/v1/queues/{name}/stats``)
    rather than the concrete path, keeping label cardinality bounded.

    Returns:
        The middleware function.
    """

    async def metrics_middleware(request: Request, call_next: Callable):
        """Middleware recording count and latency of each request."""
        if request.url.path in _SKIPPED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        route = request.scope.get("route")
        endpoint = getattr(route, "path", "unmatched")

        get_metrics().record_api_request(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
            duration_seconds=duration,
        )
        return response

    return metrics_middleware
