"""
Prometheus metrics for the classbook engine.

Service timings are fed by BaseService.measure_operation; the domain counters
are bumped by the hold, cancellation and cache code paths. Everything lives
in a private registry so an embedding application decides how to expose it.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "classbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "classbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "classbook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

availability_cache_lookups_total = Counter(
    "classbook_availability_cache_lookups_total",
    "Availability cache lookups by result",
    ["result"],  # hit | miss
    registry=REGISTRY,
)

holds_total = Counter(
    "classbook_holds_total",
    "Temporary holds by outcome",
    ["outcome"],  # created | rejected | expired
    registry=REGISTRY,
)

cancellations_total = Counter(
    "classbook_cancellations_total",
    "Executed cancellations by initiator",
    ["initiator"],  # user | admin
    registry=REGISTRY,
)

refunds_total = Counter(
    "classbook_refunds_total",
    "Refund settlements by terminal status",
    ["status"],  # completed | failed
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Records classbook metrics and renders the exposition payload."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'HoldService')
            operation: Operation/method name (e.g., 'create_temp_reservation')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_cache_lookup(hit: bool) -> None:
        availability_cache_lookups_total.labels(result="hit" if hit else "miss").inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_hold(outcome: str) -> None:
        holds_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_cancellation(is_admin: bool) -> None:
        cancellations_total.labels(initiator="admin" if is_admin else "user").inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_refund(status: str) -> None:
        refunds_total.labels(status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        The rendered payload is reused for up to a second unless a metric
        changed in the meantime.
        """
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > PrometheusMetrics._cache_ttl_seconds:
                payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_payload = payload
                PrometheusMetrics._cache_ts = now
        return payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
