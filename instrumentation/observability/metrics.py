"""
instrumentation - OpenTelemetry Metrics

Meter provider pushing to an OTLP/gRPC collector on a fixed interval, with
an optional Prometheus reader so the same instruments can be scraped.

Metrics exposed:
- memory.heap: gauge of process memory
- request.per.second: counter of handled requests
- thread.count: gauge of live threads
- response.time: histogram of handler latency (ms)
- memory.allocated: histogram of process memory
- uptime: gauge of seconds since startup

Usage:
    from instrumentation.observability.metrics import Metrics, metrics_endpoint

    metrics = Metrics("otel-collector:4317", resource, service_name="demo-server")
    counter = metrics.meter.create_counter("request.per.second")

    @app.get("/metrics")
    async def prometheus_metrics():
        return metrics_endpoint()
"""

from typing import Optional, Sequence

from fastapi import Response
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.metrics import Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..errors import TelemetrySetupError
from .logging import StructuredLogger, get_logger


def build_metric_exporter(otlp_endpoint: str, timeout_seconds: Optional[float] = None) -> MetricExporter:
    """
    Create the OTLP/gRPC metric exporter.

    Raises:
        TelemetrySetupError: the exporter could not be constructed
    """
    try:
        return OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True, timeout=timeout_seconds)
    except Exception as e:
        raise TelemetrySetupError("metric exporter", e) from e


class Metrics:
    """
    Meter provider for one service.

    The periodic reader pushes on its own timer thread, independent of
    request handling.
    """

    def __init__(
        self,
        otlp_endpoint: str,
        resource: Resource,
        service_name: str,
        export_interval_millis: int = 2000,
        exporter: Optional[MetricExporter] = None,
        readers: Optional[Sequence[MetricReader]] = None,
        prometheus_enabled: bool = False,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize metrics.

        Args:
            otlp_endpoint: OTLP collector endpoint (host:port)
            resource: Resource attached to every metric
            service_name: Instrumentation scope name for the meter
            export_interval_millis: Push interval of the periodic reader
            exporter: Metric exporter (defaults to OTLP/gRPC to otlp_endpoint)
            readers: Replace the periodic OTLP reader entirely (tests)
            prometheus_enabled: Also register a Prometheus scrape reader
            logger: Logger for lifecycle messages
        """
        self.otlp_endpoint = otlp_endpoint
        self.resource = resource
        self.service_name = service_name
        self.logger = logger or get_logger("observability.metrics")

        if readers is None:
            self.exporter = exporter or build_metric_exporter(otlp_endpoint)
            readers = [
                PeriodicExportingMetricReader(
                    self.exporter,
                    export_interval_millis=export_interval_millis,
                )
            ]
        else:
            self.exporter = exporter
        self.readers = list(readers)

        self.prometheus_reader: Optional[PrometheusMetricReader] = None
        if prometheus_enabled:
            self.prometheus_reader = PrometheusMetricReader()
            self.readers.append(self.prometheus_reader)

        self.provider = MeterProvider(
            resource=resource,
            metric_readers=self.readers,
            shutdown_on_exit=False,
        )
        self.meter: Meter = self.provider.get_meter(service_name)

        self.logger.start_logger("metrics.py", "Metrics").info(
            "Meter provider created",
            otlp_endpoint=otlp_endpoint,
            export_interval_millis=export_interval_millis,
            prometheus_enabled=prometheus_enabled,
        )

    def force_flush(self, timeout_millis: int = 10000) -> bool:
        return self.provider.force_flush(timeout_millis)

    def shutdown(self, timeout_millis: int = 5000):
        """Collect and push a final batch, then close readers and exporter."""
        self.provider.shutdown(timeout_millis=timeout_millis)


def metrics_endpoint() -> Response:
    """
    Prometheus text exposition of the default registry.

    PrometheusMetricReader registers itself with prometheus_client's
    process-wide REGISTRY and unregisters on shutdown, so the scrape shows
    every live Metrics instance with Prometheus enabled. Run one such
    instance per process; a second live one duplicates every series.
    """
    content = generate_latest(REGISTRY)
    return Response(
        content=content,
        media_type=CONTENT_TYPE_LATEST,
    )
