"""
Prometheus metrics for a ModuleBridge runtime.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry


class Metrics:
    """
    Centralized metrics for one runtime.

    Each instance owns its registry so that several runtimes (tests, embedded
    hosts) never collide on metric names.
    """

    def __init__(self, service_name: str = "modulebridge", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            registry=self.registry,
        )

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Channel
        self.events_published_total = Counter(
            "modulebridge_events_published_total",
            "Total events published on the channel",
            ["event_type"],
            registry=self.registry,
        )

        self.handler_failures_total = Counter(
            "modulebridge_handler_failures_total",
            "Subscriber handlers that raised during delivery",
            ["event_type"],
            registry=self.registry,
        )

        self.subscriptions_active = Gauge(
            "modulebridge_subscriptions_active",
            "Number of active subscriptions",
            registry=self.registry,
        )

        # Store
        self.store_operations_total = Counter(
            "modulebridge_store_operations_total",
            "Persistent store operations by outcome",
            ["operation", "outcome"],
            registry=self.registry,
        )

    def record_event_published(self, event_type: str):
        """Record an event publication."""
        self.events_published_total.labels(event_type=event_type).inc()

    def record_handler_failure(self, event_type: str):
        """Record a handler that raised while receiving an event."""
        self.handler_failures_total.labels(event_type=event_type).inc()

    def set_active_subscriptions(self, count: int):
        """Set the number of active subscriptions."""
        self.subscriptions_active.set(count)

    def record_store_operation(self, operation: str, ok: bool = True):
        """Record a store operation and whether it succeeded."""
        self.store_operations_total.labels(
            operation=operation, outcome="ok" if ok else "error"
        ).inc()
