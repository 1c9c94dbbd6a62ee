"""
instrumentation - Metric Instrument Set

The six instruments recorded on every request. Each instrument is created
on first use and reused afterwards; the SDK keys instruments by name, so
creating one twice would only return the existing registration.

Usage:
    instruments = InstrumentSet(metrics.meter)
    instruments.record_request_count()
    instruments.record_response_time(elapsed_ms=12.5)
"""

from typing import Callable, Dict, Optional

from opentelemetry.metrics import Counter, Histogram, Meter

from . import process
from .logging import StructuredLogger, get_logger

# Response time buckets in milliseconds
RESPONSE_TIME_BUCKETS = (0.0, 100.0, 200.0, 300.0, 400.0, 500.0)

# Memory buckets in bytes: 16 MiB .. 1 GiB
MEMORY_BUCKETS = tuple(float(mib * 1024 * 1024) for mib in (0, 16, 32, 64, 128, 256, 512, 1024))


class InstrumentSet:
    """Typed wrapper around the service's counters, gauges and histograms."""

    def __init__(
        self,
        meter: Meter,
        logger: Optional[StructuredLogger] = None,
        memory_reader: Callable[[], int] = process.memory_bytes,
        thread_reader: Callable[[], int] = process.thread_count,
        uptime: Optional[process.Uptime] = None,
    ):
        self.meter = meter
        self.logger = logger or get_logger("observability.instruments")
        self._memory_reader = memory_reader
        self._thread_reader = thread_reader
        self.uptime = uptime or process.Uptime()
        self._instruments: Dict[str, object] = {}

    def _instrument(self, name: str, factory: Callable[[], object]):
        instrument = self._instruments.get(name)
        if instrument is None:
            instrument = factory()
            self._instruments[name] = instrument
        return instrument

    # ============================================================
    # Instruments
    # ============================================================

    @property
    def memory_usage(self):
        return self._instrument("memory.heap", lambda: self.meter.create_gauge(
            "memory.heap",
            unit="By",
            description="Memory usage of the allocated heap objects.",
        ))

    @property
    def request_count(self) -> Counter:
        return self._instrument("request.per.second", lambda: self.meter.create_counter(
            "request.per.second",
            unit="1",
            description="The number of requests per second.",
        ))

    @property
    def thread_count(self):
        return self._instrument("thread.count", lambda: self.meter.create_gauge(
            "thread.count",
            unit="1",
            description="The number of threads that currently exist.",
        ))

    @property
    def response_time(self) -> Histogram:
        return self._instrument("response.time", lambda: self.meter.create_histogram(
            "response.time",
            unit="ms",
            description="The response time of the server.",
            explicit_bucket_boundaries_advisory=list(RESPONSE_TIME_BUCKETS),
        ))

    @property
    def memory_allocated(self) -> Histogram:
        return self._instrument("memory.allocated", lambda: self.meter.create_histogram(
            "memory.allocated",
            unit="By",
            description="The amount of memory allocated.",
            explicit_bucket_boundaries_advisory=list(MEMORY_BUCKETS),
        ))

    @property
    def uptime_gauge(self):
        return self._instrument("uptime", lambda: self.meter.create_gauge(
            "uptime",
            unit="s",
            description="The time the server has been running.",
        ))

    # ============================================================
    # Recording
    # ============================================================

    def record_memory_usage(self):
        self.memory_usage.set(self._memory_reader())

    def record_request_count(self):
        self.request_count.add(1.0)

    def record_thread_count(self):
        self.thread_count.set(self._thread_reader())

    def record_response_time(self, elapsed_ms: float):
        self.response_time.record(elapsed_ms)

    def record_memory_allocated(self):
        self.memory_allocated.record(float(self._memory_reader()))

    def record_uptime(self, logger: Optional[StructuredLogger] = None):
        """Record and log seconds since startup."""
        seconds = self.uptime.seconds()
        (logger or self.logger).start_logger("instruments.py", "uptime").info(
            f"Uptime: {seconds:.3f}",
            uptime_seconds=round(seconds, 3),
        )
        self.uptime_gauge.set(int(seconds))

    def record_request(self, logger: Optional[StructuredLogger] = None):
        """Record everything a handled request contributes, except its response time."""
        self.record_request_count()
        self.record_memory_usage()
        self.record_thread_count()
        self.record_memory_allocated()
        self.record_uptime(logger)
