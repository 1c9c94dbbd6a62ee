"""
instrumentation - Telemetry Middleware

Opens a server span for every request, the way an instrumented HTTP handler
wrapper does, and carries its identifiers into logs and response headers.

Usage:
    app.add_middleware(TelemetryMiddleware)

The Telemetry instance is read from app.state.telemetry.
"""

import uuid
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp
from opentelemetry.trace import Status, StatusCode

from .logging import LogContext, get_logger
from .tracing import TraceContext


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Server span, log context and correlation headers per request."""

    # Paths to exclude from tracing
    EXCLUDE_PATHS = {"/health", "/metrics", "/openapi.json", "/docs", "/redoc"}

    def __init__(
        self,
        app: ASGIApp,
        exclude_paths: Optional[set] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or self.EXCLUDE_PATHS
        self.logger = get_logger("observability.middleware")

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        telemetry = getattr(request.app.state, "telemetry", None)
        if telemetry is None or request.url.path in self.exclude_paths:
            return await call_next(request)

        headers = dict(request.headers)

        request_id = headers.get("x-request-id", "")
        if not request_id:
            request_id = f"req_{uuid.uuid4().hex[:24]}"

        with telemetry.tracing.start_server_span(
            name=request.url.path,
            headers=headers,
            attributes={
                "http.method": request.method,
                "http.url": str(request.url),
                "http.route": request.url.path,
                "http.scheme": request.url.scheme,
                "http.host": request.url.hostname or "",
                "http.user_agent": headers.get("user-agent", ""),
                "http.request_id": request_id,
            },
        ) as span:
            trace_ctx = TraceContext.from_span(span)

            LogContext.set_current(LogContext(
                request_id=request_id,
                trace_id=trace_ctx.trace_id,
                span_id=trace_ctx.span_id,
                endpoint=request.url.path,
            ))

            request.state.request_id = request_id
            request.state.trace_context = trace_ctx

            try:
                response = await call_next(request)

                span.set_attribute("http.status_code", response.status_code)
                if response.status_code >= 500:
                    span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))

                response.headers["X-Request-Id"] = request_id
                response.headers["X-Trace-Id"] = trace_ctx.trace_id
                response.headers["X-Span-Id"] = trace_ctx.span_id
                return response

            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                self.logger.exception(
                    "Request failed with exception",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            finally:
                LogContext.clear()
