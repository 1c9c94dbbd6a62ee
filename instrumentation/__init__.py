"""
instrumentation - Instrumented Hello Service

A small HTTP service that emits OpenTelemetry traces and metrics for every
request to an OTLP/gRPC collector.
"""

__version__ = "1.0.0"
__author__ = "instrumentation"
