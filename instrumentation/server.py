"""
instrumentation - API Server

FastAPI app exposing the instrumented /hello endpoint.

Startup builds the telemetry (fatal on failure); shutdown flushes traces
and metrics within a bounded timeout.

Environment:
- OTEL_EXPORTER_OTLP_ENDPOINT: collector address (default otel-collector:4317)
- HOST / PORT: listen address (default 0.0.0.0:8080)
- LOG_LEVEL / LOG_FORMAT: logging setup
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from . import __version__
from .api import hello_router
from .config import Settings
from .errors import InstrumentationError, TelemetrySetupError
from .observability import (
    Telemetry,
    TelemetryMiddleware,
    get_logger,
    metrics_endpoint,
    setup_logging,
    setup_telemetry,
)


def create_app(settings: Optional[Settings] = None, telemetry: Optional[Telemetry] = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        settings: Service settings (read from the environment if omitted)
        telemetry: Prebuilt telemetry; built during startup if omitted
    """
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown."""
        setup_logging(level=settings.log_level, json_output=settings.log_json)
        logger = get_logger("server")

        if app.state.telemetry is None:
            try:
                app.state.telemetry = setup_telemetry(settings, logger=logger)
            except TelemetrySetupError as e:
                logger.start_logger("server.py", "lifespan").critical(
                    "Telemetry setup failed",
                    error=str(e),
                    otlp_endpoint=settings.otlp_endpoint,
                )
                raise

        app.state.telemetry.instruments.record_uptime(logger)

        logger.info(
            "Server ready",
            service_name=settings.service_name,
            service_version=settings.service_version,
            otlp_endpoint=settings.otlp_endpoint,
        )

        yield

        app.state.telemetry.shutdown()
        logger.info("Server stopped")

    app = FastAPI(
        title="instrumentation",
        description="Hello World service instrumented with OpenTelemetry traces and metrics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.telemetry = telemetry

    app.add_middleware(TelemetryMiddleware)
    app.include_router(hello_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.service_version,
            "service": settings.service_name,
        }

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus text exposition of the service instruments."""
        if not settings.prometheus_enabled:
            raise HTTPException(status_code=404, detail="Not Found")
        return metrics_endpoint()

    @app.exception_handler(InstrumentationError)
    async def instrumentation_exception_handler(request: Request, exc: InstrumentationError):
        """Render service errors as plain text."""
        return PlainTextResponse(
            exc.error.message,
            status_code=exc.status_code,
            headers={"X-Error-Code": exc.error.code},
        )

    return app


app = create_app()


def main():
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
