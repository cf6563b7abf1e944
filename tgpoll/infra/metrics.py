from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Iterator

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest, start_http_server

from .settings import Settings, get_settings


@dataclass(slots=True)
class MetricHandles:
    requests_total: Counter | None = None
    errors_total: Counter | None = None
    updates_total: Counter | None = None
    latency_histogram: Histogram | None = None


class Metrics:
    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._registry = CollectorRegistry(auto_describe=True)
        self._handles = MetricHandles()
        if self._enabled:
            self._init_metrics()

    def _init_metrics(self) -> None:
        self._handles.requests_total = Counter(
            "bot_requests_total",
            "Total number of Bot API method calls",
            labelnames=("method",),
            registry=self._registry,
        )
        self._handles.errors_total = Counter(
            "bot_errors_total",
            "Total number of failed Bot API calls by error kind",
            labelnames=("kind",),
            registry=self._registry,
        )
        self._handles.updates_total = Counter(
            "bot_updates_total",
            "Total number of polled updates by outcome",
            labelnames=("outcome",),
            registry=self._registry,
        )
        self._handles.latency_histogram = Histogram(
            "bot_request_latency",
            "Bot API request latency in milliseconds",
            registry=self._registry,
            unit="milliseconds",
            buckets=(50, 100, 200, 400, 800, 1500, 3000, 5000, 10000, 30000, 60000),
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def inc_request(self, method: str) -> None:
        if self._handles.requests_total:
            self._handles.requests_total.labels(method=method).inc()

    def inc_error(self, kind: str) -> None:
        if self._handles.errors_total:
            self._handles.errors_total.labels(kind=kind).inc()

    def inc_update(self, outcome: str) -> None:
        if self._handles.updates_total:
            self._handles.updates_total.labels(outcome=outcome).inc()

    def observe_latency_ms(self, milliseconds: float) -> None:
        if self._handles.latency_histogram:
            self._handles.latency_histogram.observe(milliseconds)

    @contextmanager
    def latency_timer(self) -> Iterator[None]:
        start = perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (perf_counter() - start) * 1000
            self.observe_latency_ms(elapsed_ms)

    def export(self) -> bytes:
        return generate_latest(self._registry)

    def serve(self, port: int) -> None:
        start_http_server(port, registry=self._registry)


_metrics: Metrics | None = None


def get_metrics(settings: Settings | None = None) -> Metrics:
    global _metrics
    if _metrics:
        return _metrics
    settings = settings or get_settings()
    _metrics = Metrics(enabled=settings.metrics_enabled)
    return _metrics
