"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from docqueue.constants import (
    METRIC_API_LATENCY,
    METRIC_API_REQUESTS,
    METRIC_MESSAGES_ACKED,
    METRIC_MESSAGES_ADDED,
    METRIC_MESSAGES_DEAD_LETTERED,
    METRIC_MESSAGES_LEASED,
    METRIC_QUEUE_MESSAGES,
    METRIC_UNIDENTIFIED_ACK,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for queues.

    Collects metrics for:
    - Messages by state (sampled by stats())
    - Adds, leases, acks and dead-letter hand-offs
    - Rejected ping/ack tokens
    - API requests
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_messages = Gauge(
            METRIC_QUEUE_MESSAGES,
            "Number of messages in the queue by state",
            ["queue", "state"],
            registry=self._registry,
        )

        self.messages_added = Counter(
            METRIC_MESSAGES_ADDED,
            "Total number of messages added",
            ["queue"],
            registry=self._registry,
        )

        self.messages_leased = Counter(
            METRIC_MESSAGES_LEASED,
            "Total number of successful claims",
            ["queue"],
            registry=self._registry,
        )

        self.messages_acked = Counter(
            METRIC_MESSAGES_ACKED,
            "Total number of acknowledged messages",
            ["queue"],
            registry=self._registry,
        )

        self.messages_dead_lettered = Counter(
            METRIC_MESSAGES_DEAD_LETTERED,
            "Total number of messages forwarded to a dead queue",
            ["queue"],
            registry=self._registry,
        )

        self.unidentified_ack = Counter(
            METRIC_UNIDENTIFIED_ACK,
            "Total number of ping/ack calls with an unknown or expired token",
            ["queue", "operation"],
            registry=self._registry,
        )

        self.api_requests = Counter(
            METRIC_API_REQUESTS,
            "Total number of API requests",
            ["method", "endpoint", "status"],
            registry=self._registry,
        )

        self.api_latency = Histogram(
            METRIC_API_LATENCY,
            "API request latency in seconds",
            ["method", "endpoint"],
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

    def record_messages_added(self, queue: str, count: int = 1) -> None:
        """Record messages added to a queue."""
        self.messages_added.labels(queue=queue).inc(count)

    def record_message_leased(self, queue: str) -> None:
        """Record a successful claim."""
        self.messages_leased.labels(queue=queue).inc()

    def record_message_acked(self, queue: str) -> None:
        """Record an acknowledgement."""
        self.messages_acked.labels(queue=queue).inc()

    def record_message_dead_lettered(self, queue: str) -> None:
        """Record a dead-letter hand-off."""
        self.messages_dead_lettered.labels(queue=queue).inc()

    def record_unidentified_ack(self, queue: str, operation: str) -> None:
        """Record a rejected ping or ack."""
        self.unidentified_ack.labels(queue=queue, operation=operation).inc()

    def update_queue_messages(self, queue: str, state: str, count: int) -> None:
        """Set the sampled message count for a queue and state."""
        self.queue_messages.labels(queue=queue, state=state).set(count)

    def record_api_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration_seconds: float,
    ) -> None:
        """Record an API request."""
        self.api_requests.labels(
            method=method,
            endpoint=endpoint,
            status=str(status),
        ).inc()
        self.api_latency.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """Get the metrics collector instance, creating it on first use."""
    if _metrics is None:
        return setup_metrics()
    return _metrics
