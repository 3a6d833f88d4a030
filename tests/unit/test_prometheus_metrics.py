"""Tests for the Prometheus instrumentation."""

from unittest.mock import Mock

import pytest

from classbook.monitoring.prometheus_metrics import REGISTRY, prometheus_metrics
from classbook.services.availability_cache import AvailabilityCache
from classbook.services.base import BaseService


class ExportedService(BaseService):
    @BaseService.measure_operation("fetch")
    def fetch(self):
        return "ok"

    @BaseService.measure_operation("explode")
    def explode(self):
        raise KeyError("missing")


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestServiceOperationMetrics:
    def test_success_is_counted(self):
        before = _sample(
            "classbook_service_operations_total",
            service="ExportedService",
            operation="fetch",
            status="success",
        )

        ExportedService(Mock()).fetch()

        after = _sample(
            "classbook_service_operations_total",
            service="ExportedService",
            operation="fetch",
            status="success",
        )
        assert after == before + 1

    def test_error_type_is_recorded(self):
        labels = {"service": "ExportedService", "operation": "explode", "error_type": "KeyError"}
        before = _sample("classbook_errors_total", **labels)

        with pytest.raises(KeyError):
            ExportedService(Mock()).explode()

        assert _sample("classbook_errors_total", **labels) == before + 1


class TestDomainCounters:
    def test_cache_hits_and_misses(self):
        cache = AvailabilityCache(ttl_seconds=30)
        hits = _sample("classbook_availability_cache_lookups_total", result="hit")
        misses = _sample("classbook_availability_cache_lookups_total", result="miss")

        cache.get("01HSCHEDULE")
        cache.put("01HSCHEDULE", {"remaining_seats": 1})
        cache.get("01HSCHEDULE")

        assert _sample("classbook_availability_cache_lookups_total", result="hit") == hits + 1
        assert _sample("classbook_availability_cache_lookups_total", result="miss") == misses + 1

    def test_exposition_payload(self):
        prometheus_metrics.inc_refund("failed")

        payload = prometheus_metrics.get_metrics()

        assert b"classbook_refunds_total" in payload
        assert prometheus_metrics.get_content_type().startswith("text/plain")
