"""
Status reporting.

The web server reports what it does to a StatusObserver instead of a
process-wide status registry. The base class ignores every event;
PrometheusStatusObserver records them as Prometheus metrics.
"""

from dataclasses import dataclass

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class StatusObserver:
    def port(self, port: int) -> None:
        """Called once per mount cycle with the port the listener binds to."""

    def store_reconnect(self, store: str, attempt: int) -> None:
        """Called before every reconnect attempt of a backing store."""

    def request(self, method: str, status_code: int, duration: float) -> None:
        """Called after every request with its latency in seconds."""


@dataclass
class PrometheusMetrics:
    listening_port: Gauge

    request_count_total: Counter  # labels: method, status_code
    request_duration_seconds: Histogram  # labels: method

    store_reconnect_count_total: Counter  # labels: store


metrics = PrometheusMetrics(
    listening_port=Gauge("listening_port", "Port the web server listens on."),
    request_count_total=Counter(
        "request_count_total",
        "Total number of requests handled.",
        ["method", "status_code"],
    ),
    request_duration_seconds=Histogram(
        "request_duration_seconds",
        "Total roundtrip request duration distribution.",
        ["method"],
    ),
    store_reconnect_count_total=Counter(
        "store_reconnect_count_total",
        "Total reconnect attempts to backing stores.",
        ["store"],
    ),
)


class PrometheusStatusObserver(StatusObserver):
    def __init__(self, prometheus_metrics: PrometheusMetrics = metrics):
        self.metrics = prometheus_metrics

    def port(self, port: int) -> None:
        self.metrics.listening_port.set(port)

    def store_reconnect(self, store: str, attempt: int) -> None:
        self.metrics.store_reconnect_count_total.labels(store=store).inc()

    def request(self, method: str, status_code: int, duration: float) -> None:
        self.metrics.request_count_total.labels(
            method=method, status_code=status_code
        ).inc()
        self.metrics.request_duration_seconds.labels(method=method).observe(duration)


async def metrics_handler(request, call_next):
    """Route handler exposing the Prometheus registry."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
