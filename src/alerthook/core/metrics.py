"""
Prometheus metrics collection.

In-memory counters, one registry per application instance.
"""

import time
from typing import Optional

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for AlertHook.

    Keep metrics simple,
    use in-memory counters, let Prometheus handle storage.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()

        # Service info
        self.service_info = Info(
            "alerthook_service",
            "AlertHook service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": "0.1.0",
            "service": "alerthook",
        })

        # Request metrics
        self.requests_total = Counter(
            "alerthook_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "alerthook_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
            registry=self.registry,
        )

        # Alert metrics
        self.alerts_received_total = Counter(
            "alerthook_alerts_received_total",
            "Total alert notifications accepted",
            ["status"],
            registry=self.registry,
        )

        self.guard_rejections_total = Counter(
            "alerthook_guard_rejections_total",
            "Total requests rejected by a guard",
            ["guard"],
            registry=self.registry,
        )

        self.sound_dispatch_total = Counter(
            "alerthook_sound_dispatch_total",
            "Sound playback outcomes",
            ["outcome"],
            registry=self.registry,
        )

        # System metrics
        self.uptime_seconds = Gauge(
            "alerthook_uptime_seconds",
            "Service uptime in seconds",
            registry=self.registry,
        )

        self._start_time = time.time()

    def record_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_seconds: float
    ) -> None:
        """Record HTTP request metrics."""
        self.requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self.request_duration.labels(
            method=method,
            endpoint=endpoint
        ).observe(duration_seconds)

    def record_alert(self, status: str) -> None:
        self.alerts_received_total.labels(status=status).inc()

    def record_rejection(self, guard: str) -> None:
        self.guard_rejections_total.labels(guard=guard).inc()

    def record_sound(self, outcome: str) -> None:
        self.sound_dispatch_total.labels(outcome=outcome).inc()

    def update_system_metrics(self) -> None:
        """Update system-level metrics."""
        self.uptime_seconds.set(time.time() - self._start_time)
