"""
instrumentation - Pytest Configuration

Configures:
- Smoke test handling (skip with SKIP_SMOKE=1)
- Telemetry wired to in-memory exporters, so no collector is needed
"""

import os
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from instrumentation.config import Settings
from instrumentation.observability.telemetry import setup_telemetry
from instrumentation.server import create_app


# ============================================================
# Environment Configuration
# ============================================================

def _is_truthy(value: Optional[str]) -> bool:
    """Check if environment variable is truthy."""
    if value is None:
        return False
    return value.lower() in ("1", "true", "yes", "on")


SKIP_SMOKE = _is_truthy(os.getenv("SKIP_SMOKE"))


# ============================================================
# Pytest Markers
# ============================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "smoke: mark test as smoke test (skip with SKIP_SMOKE=1)"
    )


def pytest_collection_modifyitems(config, items):
    """Skip smoke tests if SKIP_SMOKE=1."""
    skip_smoke = pytest.mark.skip(reason="Smoke test skipped - SKIP_SMOKE=1")

    for item in items:
        if "smoke" in item.keywords and SKIP_SMOKE:
            item.add_marker(skip_smoke)


# ============================================================
# Telemetry fixtures
# ============================================================

@pytest.fixture
def settings():
    """Settings for in-process tests: no delay, no Prometheus reader."""
    return Settings(
        hello_delay_seconds=0.0,
        prometheus_enabled=False,
        shutdown_timeout_seconds=2.0,
    )


@pytest.fixture
def span_exporter():
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader():
    return InMemoryMetricReader()


@pytest.fixture
def telemetry(settings, span_exporter, metric_reader):
    """Telemetry exporting to memory instead of a collector."""
    telemetry = setup_telemetry(
        settings,
        span_exporter=span_exporter,
        metric_readers=[metric_reader],
    )
    yield telemetry
    telemetry.shutdown()


@pytest.fixture
def app(settings, telemetry):
    return create_app(settings, telemetry=telemetry)


@pytest.fixture
def client(app):
    """Test client with the app lifespan running."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def read_metric(metric_reader):
    """Return the data points collected for one instrument name."""

    def _read(name: str):
        data = metric_reader.get_metrics_data()
        if data is None:
            return []
        for resource_metrics in data.resource_metrics:
            for scope_metrics in resource_metrics.scope_metrics:
                for metric in scope_metrics.metrics:
                    if metric.name == name:
                        return list(metric.data.data_points)
        return []

    return _read
