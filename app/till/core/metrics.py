from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.till.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._sales_committed_total = None
        self._returns_merged_total = None
        self._submission_failures_total = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000),
            registry=self._registry,
        )
        self._sales_committed_total = Counter(
            "sales_committed_total",
            "Invoices committed to the ledger by payment method.",
            ["payment_method"],
            registry=self._registry,
        )
        self._returns_merged_total = Counter(
            "returns_merged_total",
            "Return selections merged into an open cart.",
            registry=self._registry,
        )
        self._submission_failures_total = Counter(
            "submission_failures_total",
            "Invoice submissions rejected or failed by the ledger.",
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_sale_committed(self, payment_method: str) -> None:
        if not self.enabled:
            return
        self._sales_committed_total.labels(payment_method=payment_method).inc()

    def increment_return_merged(self, count: int = 1) -> None:
        if not self.enabled:
            return
        self._returns_merged_total.inc(count)

    def increment_submission_failure(self) -> None:
        if not self.enabled:
            return
        self._submission_failures_total.inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
