"""
instrumentation - Telemetry Facade

Bootstraps tracing and metrics against one collector endpoint and hides
both behind a single shutdown call.

Usage:
    telemetry = setup_telemetry(Settings.from_env())
    try:
        with telemetry.start_span("work"):
            telemetry.instruments.record_request_count()
    finally:
        telemetry.shutdown()
"""

import threading
import time
from typing import Callable, Optional, Sequence

from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.trace.export import SpanExporter

from ..config import Settings
from ..errors import TelemetryShutdownError
from .instruments import InstrumentSet
from .logging import StructuredLogger, TimedOperation, get_logger
from .metrics import Metrics, build_metric_exporter
from .resource import build_resource
from .tracing import Tracing, build_span_exporter

ErrorHandler = Callable[[Exception], None]


class Telemetry:
    """Tracing + metrics for the service, shut down together."""

    def __init__(
        self,
        tracing: Tracing,
        metrics: Metrics,
        shutdown_timeout_seconds: float = 5.0,
        logger: Optional[StructuredLogger] = None,
        on_error: Optional[ErrorHandler] = None,
    ):
        self.tracing = tracing
        self.metrics = metrics
        self.shutdown_timeout_seconds = shutdown_timeout_seconds
        self.logger = logger or get_logger("observability.telemetry")
        self.on_error = on_error or self._log_error
        self.instruments = InstrumentSet(metrics.meter, logger=self.logger)
        self._shutdown = False
        self._shutdown_lock = threading.Lock()

    @property
    def tracer(self):
        return self.tracing.tracer

    @property
    def meter(self):
        return self.metrics.meter

    @property
    def propagator(self):
        return self.tracing.propagator

    def start_span(self, name: str, **kwargs):
        return self.tracing.start_span(name, **kwargs)

    def _log_error(self, error: Exception):
        self.logger.start_logger("telemetry.py", "shutdown").error(str(error))

    def _start_bounded(self, component: str, fn: Callable[[int], None], timeout: float):
        """Run fn in a daemon thread; returns the thread and its error list."""
        errors = []

        def target():
            try:
                fn(int(timeout * 1000))
            except Exception as e:
                errors.append(e)

        worker = threading.Thread(target=target, name=f"{component}-shutdown", daemon=True)
        worker.start()
        return worker, errors

    def shutdown(self, timeout_seconds: Optional[float] = None):
        """
        Flush and close the trace and metric exporters.

        Both halves run concurrently and each gets the whole timeout, so a
        stalled trace flush does not starve the final metric push. Failures
        and timeouts go to the error handler; nothing is retried and
        nothing is raised. Calling this more than once is a no-op.
        """
        with self._shutdown_lock:
            if self._shutdown:
                return
            self._shutdown = True

        timeout = self.shutdown_timeout_seconds if timeout_seconds is None else timeout_seconds

        with TimedOperation("telemetry shutdown", self.logger, extra={"timeout_seconds": timeout}):
            deadline = time.monotonic() + timeout
            running = [
                (component, *self._start_bounded(component, fn, timeout))
                for component, fn in (
                    ("tracer provider", self.tracing.shutdown),
                    ("meter provider", self.metrics.shutdown),
                )
            ]
            for component, worker, errors in running:
                worker.join(max(deadline - time.monotonic(), 0.0))
                if worker.is_alive():
                    self.on_error(TelemetryShutdownError(component, f"timed out after {timeout:.2f}s"))
                elif errors:
                    self.on_error(TelemetryShutdownError(component, str(errors[0])))


def setup_telemetry(
    settings: Settings,
    logger: Optional[StructuredLogger] = None,
    span_exporter: Optional[SpanExporter] = None,
    metric_readers: Optional[Sequence[MetricReader]] = None,
    on_error: Optional[ErrorHandler] = None,
) -> Telemetry:
    """
    Build the resource, exporters and providers.

    Args:
        settings: Service settings (collector endpoint, service identity)
        logger: Logger for lifecycle messages
        span_exporter: Replace the OTLP span exporter
        metric_readers: Replace the periodic OTLP metric reader
        on_error: Handler for shutdown failures

    Raises:
        TelemetrySetupError: the resource or an exporter could not be built
    """
    logger = logger or get_logger("observability.telemetry")

    resource = build_resource(settings.service_name, settings.service_version)

    if span_exporter is None:
        span_exporter = build_span_exporter(settings.otlp_endpoint)
    metric_exporter = None
    if metric_readers is None:
        metric_exporter = build_metric_exporter(settings.otlp_endpoint)

    tracing = Tracing(
        settings.otlp_endpoint,
        resource,
        service_name=settings.service_name,
        exporter=span_exporter,
        logger=logger,
    )
    metrics = Metrics(
        settings.otlp_endpoint,
        resource,
        service_name=settings.service_name,
        export_interval_millis=settings.metric_export_interval_millis,
        exporter=metric_exporter,
        readers=metric_readers,
        prometheus_enabled=settings.prometheus_enabled,
        logger=logger,
    )

    return Telemetry(
        tracing,
        metrics,
        shutdown_timeout_seconds=settings.shutdown_timeout_seconds,
        logger=logger,
        on_error=on_error,
    )
