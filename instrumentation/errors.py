"""
instrumentation - Error Definitions

Error taxonomy split by lifecycle phase:
- startup errors (configuration, telemetry setup) are fatal
- request errors are rendered to the caller
- shutdown errors are reported and never retried
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ErrorType(str, Enum):
    """Error classification."""
    STARTUP = "startup_error"
    REQUEST = "request_error"
    SHUTDOWN = "shutdown_error"


@dataclass
class ErrorDetails:
    """Full error information."""
    code: str
    message: str
    type: ErrorType
    details: Dict[str, Any] = field(default_factory=dict)


class InstrumentationError(Exception):
    """Base exception for all service errors."""

    def __init__(self, error: ErrorDetails, status_code: int = 500):
        self.error = error
        self.status_code = status_code
        super().__init__(error.message)


# ============================================================
# Startup errors
# ============================================================

class ConfigError(InstrumentationError):
    """Invalid configuration value."""

    def __init__(self, variable: str, value: str, reason: str):
        super().__init__(
            ErrorDetails(
                code="invalid_config",
                message=f"Invalid value for {variable}: {value!r} ({reason})",
                type=ErrorType.STARTUP,
                details={"variable": variable},
            )
        )


class TelemetrySetupError(InstrumentationError):
    """Resource or exporter construction failed."""

    def __init__(self, component: str, cause: Exception):
        self.cause = cause
        super().__init__(
            ErrorDetails(
                code="telemetry_setup_failed",
                message=f"failed to create {component}: {cause}",
                type=ErrorType.STARTUP,
                details={"component": component},
            )
        )


# ============================================================
# Request errors
# ============================================================

class ResponseWriteError(InstrumentationError):
    """Writing the response body failed."""

    MESSAGE = "write operation failed."

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(
            ErrorDetails(
                code="write_failed",
                message=self.MESSAGE,
                type=ErrorType.REQUEST,
                details={"cause": str(cause)},
            ),
            status_code=500,
        )


# ============================================================
# Shutdown errors
# ============================================================

class TelemetryShutdownError(InstrumentationError):
    """Flushing or closing an exporter failed or timed out."""

    def __init__(self, component: str, reason: str):
        self.component = component
        super().__init__(
            ErrorDetails(
                code="telemetry_shutdown_failed",
                message=f"failed to shut down {component}: {reason}",
                type=ErrorType.SHUTDOWN,
                details={"component": component},
            )
        )
