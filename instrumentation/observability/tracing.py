"""
instrumentation - OpenTelemetry Distributed Tracing

Tracer provider wired to an OTLP/gRPC collector.

Features:
- OTLP span export over an insecure gRPC channel
- Batching span processor, always-on sampling
- W3C trace context + baggage propagation
- No global registration: the provider is handed around explicitly

Usage:
    from instrumentation.observability.tracing import Tracing

    tracing = Tracing("otel-collector:4317", resource, service_name="demo-server")

    with tracing.start_span("operation_name") as span:
        span.set_attribute("key", "value")
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass

from opentelemetry import trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.context import Context
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON
from opentelemetry.trace import SpanKind
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from ..errors import TelemetrySetupError
from .logging import StructuredLogger, get_logger


@dataclass
class TraceContext:
    """Trace identifiers of a span, hex encoded."""
    trace_id: str
    span_id: str
    trace_flags: int = 1

    @classmethod
    def from_span(cls, span: trace.Span) -> "TraceContext":
        ctx = span.get_span_context()
        return cls(
            trace_id=format(ctx.trace_id, "032x"),
            span_id=format(ctx.span_id, "016x"),
            trace_flags=ctx.trace_flags,
        )

    def to_traceparent(self) -> str:
        """Generate W3C traceparent header value."""
        return f"00-{self.trace_id}-{self.span_id}-{self.trace_flags:02x}"


def build_span_exporter(otlp_endpoint: str, timeout_seconds: Optional[float] = None) -> SpanExporter:
    """
    Create the OTLP/gRPC span exporter.

    Raises:
        TelemetrySetupError: the exporter could not be constructed
    """
    try:
        return OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True, timeout=timeout_seconds)
    except Exception as e:
        raise TelemetrySetupError("trace exporter", e) from e


class Tracing:
    """
    Tracer provider and propagator for one service.

    Owns the span exporter; shutdown() flushes pending spans and closes it.
    """

    def __init__(
        self,
        otlp_endpoint: str,
        resource: Resource,
        service_name: str,
        exporter: Optional[SpanExporter] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize tracing.

        Args:
            otlp_endpoint: OTLP collector endpoint (host:port)
            resource: Resource attached to every span
            service_name: Instrumentation scope name for the tracer
            exporter: Span exporter (defaults to OTLP/gRPC to otlp_endpoint)
            logger: Logger for lifecycle messages
        """
        self.otlp_endpoint = otlp_endpoint
        self.resource = resource
        self.service_name = service_name
        self.logger = logger or get_logger("observability.tracing")

        self.exporter = exporter or build_span_exporter(otlp_endpoint)

        # Telemetry.shutdown() owns the lifecycle; no atexit hook
        self.provider = TracerProvider(resource=resource, sampler=ALWAYS_ON, shutdown_on_exit=False)
        self.provider.add_span_processor(BatchSpanProcessor(self.exporter))

        self.propagator = CompositePropagator([
            TraceContextTextMapPropagator(),
            W3CBaggagePropagator(),
        ])

        self.tracer = self.provider.get_tracer(service_name)

        self.logger.start_logger("tracing.py", "Tracing").info(
            "Tracer provider created",
            otlp_endpoint=otlp_endpoint,
        )

    def extract_context(self, headers: Dict[str, str]) -> Context:
        """
        Extract trace context and baggage from HTTP headers.

        Args:
            headers: HTTP headers dict (case-insensitive keys)
        """
        normalized = {k.lower(): v for k, v in headers.items()}
        return self.propagator.extract(normalized)

    def inject_context(self, headers: Dict[str, str], context: Optional[Context] = None) -> Dict[str, str]:
        """Inject the current (or given) trace context into HTTP headers."""
        self.propagator.inject(headers, context=context)
        return headers

    def start_span(
        self,
        name: str,
        context: Optional[Context] = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """
        Start a span and make it current.

        Args:
            name: Span name
            context: Parent context (uses current if not provided)
            kind: Span kind
            attributes: Initial span attributes

        Returns:
            Context manager that yields the span and ends it on exit
        """
        return self.tracer.start_as_current_span(
            name,
            context=context,
            kind=kind,
            attributes=attributes,
        )

    def start_server_span(
        self,
        name: str,
        headers: Dict[str, str],
        attributes: Optional[Dict[str, Any]] = None,
    ):
        """Start a server span whose parent is extracted from the headers."""
        return self.start_span(
            name,
            context=self.extract_context(headers),
            kind=SpanKind.SERVER,
            attributes=attributes,
        )

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.provider.force_flush(timeout_millis)

    def shutdown(self, timeout_millis: int = 5000):
        """Flush pending spans, then shut down the provider and exporter."""
        if not self.provider.force_flush(timeout_millis):
            self.logger.warning("Span flush did not complete", timeout_millis=timeout_millis)
        self.provider.shutdown()
