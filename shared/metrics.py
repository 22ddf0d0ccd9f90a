"""
Shared metrics configuration for the Elections Access Layer.
"""

import threading
from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, REGISTRY


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
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
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_gate_metrics()

    def _setup_gate_metrics(self):
        """Set up submission gate metrics."""
        self._metrics["gate_decisions_total"] = Counter(
            "gate_decisions_total",
            "Total submission gate decisions",
            ["outcome", "reason"],
            registry=self.registry
        )

        self._metrics["store_errors_total"] = Counter(
            "store_errors_total",
            "Backing store errors absorbed by a check",
            ["operation", "policy"],
            registry=self.registry
        )

        self._metrics["attempt_records_total"] = Counter(
            "attempt_records_total",
            "Attempt audit writes",
            ["status", "result"],
            registry=self.registry
        )

        self._metrics["gate_duration_seconds"] = Histogram(
            "gate_duration_seconds",
            "Submission gate evaluation duration in seconds",
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
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
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_gate_decision(self, outcome: str, reason: Optional[str] = None):
        self._metrics["gate_decisions_total"].labels(outcome=outcome, reason=reason or "none").inc()

    def observe_gate(self, duration: float):
        self._metrics["gate_duration_seconds"].observe(duration)

    def record_store_error(self, operation: str, policy: str):
        self._metrics["store_errors_total"].labels(operation=operation, policy=policy).inc()

    def record_attempt(self, status: str, result: str):
        self._metrics["attempt_records_total"].labels(status=status, result=result).inc()


_collectors: Dict[str, MetricsCollector] = {}
_collectors_lock = threading.Lock()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service.

    Collectors bound to the default registry are shared per service name,
    since prometheus_client refuses duplicate registrations.
    """
    if registry is not None:
        return MetricsCollector(service_name, registry)

    with _collectors_lock:
        collector = _collectors.get(service_name)
        if collector is None:
            collector = MetricsCollector(service_name)
            _collectors[service_name] = collector
        return collector
