"""
Shared metrics configuration for the Taskboard backend.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info, generate_latest

# Buckets sized for document-store backed requests, in seconds
REQUEST_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsCollector:
    """Prometheus metrics for one service instance."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns its registry so several app instances can share a process
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        self._metrics["service_info"] = Info(
            "taskboard_service",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP surface
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=REQUEST_DURATION_BUCKETS,
            registry=self.registry
        )
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Health check results",
            ["status"],
            registry=self.registry
        )

        # Failures
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Server-side errors by type",
            ["error_type"],
            registry=self.registry
        )
        self._metrics["requests_rejected_total"] = Counter(
            "requests_rejected_total",
            "Requests refused with a client error, by error code",
            ["code"],
            registry=self.registry
        )

        # Domain
        self._metrics["business_events_total"] = Counter(
            "business_events_total",
            "Project, task and user changes",
            ["event_type"],
            registry=self.registry
        )

        # Notification relay
        self._metrics["relay_active_connections"] = Gauge(
            "relay_active_connections",
            "Open websocket connections on the task relay",
            registry=self.registry
        )
        self._metrics["relay_messages_total"] = Counter(
            "relay_messages_total",
            "Messages fanned out to project rooms",
            ["event"],
            registry=self.registry
        )

    def render(self) -> bytes:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str):
        self._metrics["errors_total"].labels(error_type=error_type).inc()

    def record_rejection(self, code: str):
        self._metrics["requests_rejected_total"].labels(code=code).inc()

    def record_business_event(self, event_type: str):
        self._metrics["business_events_total"].labels(event_type=event_type).inc()

    def record_relayed_message(self, event: str):
        self._metrics["relay_messages_total"].labels(event=event).inc()

    def set_active_connections(self, count: int):
        self._metrics["relay_active_connections"].set(count)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Create the metrics collector for a service."""
    return MetricsCollector(service_name, registry)
