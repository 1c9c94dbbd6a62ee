"""
instrumentation - Observability Module

OpenTelemetry tracing and metrics exported over OTLP/gRPC, plus structured
JSON logging with context injection.

Usage:
    from instrumentation.observability import setup_telemetry, get_logger

    telemetry = setup_telemetry(settings)
    logger = get_logger(__name__)

    with telemetry.start_span("operation"):
        telemetry.instruments.record_request_count()

    telemetry.shutdown()
"""

from .instruments import InstrumentSet
from .logging import (
    JSONFormatter,
    LogContext,
    StructuredLogger,
    TimedOperation,
    get_logger,
    setup_logging,
)
from .metrics import Metrics, build_metric_exporter, metrics_endpoint
from .middleware import TelemetryMiddleware
from .resource import build_resource
from .telemetry import Telemetry, setup_telemetry
from .tracing import TraceContext, Tracing, build_span_exporter

__all__ = [
    # Logging
    "JSONFormatter",
    "LogContext",
    "StructuredLogger",
    "TimedOperation",
    "get_logger",
    "setup_logging",
    # Tracing
    "TraceContext",
    "Tracing",
    "build_span_exporter",
    # Metrics
    "InstrumentSet",
    "Metrics",
    "build_metric_exporter",
    "metrics_endpoint",
    # Combined
    "Telemetry",
    "TelemetryMiddleware",
    "build_resource",
    "setup_telemetry",
]
