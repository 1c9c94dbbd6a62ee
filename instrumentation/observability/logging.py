"""
instrumentation - Structured Logging

One JSON object per line on stdout. Entries carry the request and trace
ids of the current request plus any fields bound to the logger, such as
the `file`/`func` tags added by start_logger().

Usage:
    setup_logging(level="INFO")

    logger = get_logger("api.hello")
    logger.start_logger("hello.py", "handler").info("Hello World")

    {"timestamp": "...", "level": "INFO", "logger": "api.hello",
     "message": "Hello World", "file": "hello.py", "func": "handler",
     "request_id": "req_...", "trace_id": "...", "span_id": "..."}
"""

import sys
import json
import logging
import time
from typing import Optional, Dict, Any, Union
from datetime import datetime, timezone
from dataclasses import dataclass, field
from contextvars import ContextVar

_current_context: ContextVar[Optional["LogContext"]] = ContextVar("log_context", default=None)

# Attributes every LogRecord has; anything else was passed as an extra
_STANDARD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


@dataclass
class LogContext:
    """Correlation ids of the request being handled."""
    request_id: str = ""
    trace_id: str = ""
    span_id: str = ""
    endpoint: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def get_current(cls) -> Optional["LogContext"]:
        return _current_context.get()

    @classmethod
    def set_current(cls, ctx: "LogContext"):
        _current_context.set(ctx)

    @classmethod
    def clear(cls):
        _current_context.set(None)

    def to_dict(self) -> Dict[str, Any]:
        ids = {
            "request_id": self.request_id,
            "trace_id": self.trace_id,
            "span_id": self.span_id,
            "endpoint": self.endpoint,
        }
        result = {key: value for key, value in ids.items() if value}
        result.update(self.extra)
        return result


class JSONFormatter(logging.Formatter):
    """Render a record, its extras and the current LogContext as JSON."""

    # Collector auth can arrive through OTEL_EXPORTER_OTLP_HEADERS
    REDACTED_FIELDS = ("token", "secret", "password", "headers")

    def __init__(self, redact: bool = True):
        super().__init__()
        self.redact = redact

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        ctx = LogContext.get_current()
        if ctx:
            entry.update(ctx.to_dict())

        for key, value in vars(record).items():
            if key in _STANDARD_ATTRIBUTES:
                continue
            if self.redact and self._redacted(key):
                value = "[REDACTED]"
            entry[key] = value

        return json.dumps(entry, default=str, ensure_ascii=False)

    def _redacted(self, key: str) -> bool:
        key = key.lower()
        return any(name in key for name in self.REDACTED_FIELDS)


class StructuredLogger:
    """
    Wrapper around a stdlib logger.

    Keyword arguments of the log methods become fields of the entry.
    Loggers returned by bind() or start_logger() add their fields to
    every entry and leave the parent untouched.
    """

    def __init__(self, logger: logging.Logger, fields: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._fields: Dict[str, Any] = dict(fields or {})

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def fields(self) -> Dict[str, Any]:
        return dict(self._fields)

    def bind(self, **fields) -> "StructuredLogger":
        return StructuredLogger(self._logger, {**self._fields, **fields})

    def start_logger(self, file_name: str, func_name: str) -> "StructuredLogger":
        """Tag entries with the source file and function that wrote them."""
        return self.bind(file=file_name, func=func_name)

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = dict(self._fields)
        extra.update(kwargs.pop("extra", None) or {})

        ctx = LogContext.get_current()
        if ctx:
            extra.update(ctx.to_dict())

        for key in list(kwargs):
            if key not in {"exc_info", "stack_info", "stacklevel"}:
                extra[key] = kwargs.pop(key)

        kwargs["extra"] = extra
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs["exc_info"] = True
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)


def setup_logging(level: Union[str, int] = "INFO", json_output: bool = True) -> None:
    """
    Route the root logger to stdout.

    Replaces any handlers already installed, so calling it again (a second
    app in the same process) does not duplicate output.

    Args:
        level: Level name or number
        json_output: JSONFormatter when true, a plain text line otherwise
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)

    # Exporter retries against an absent collector are logged by grpc
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name))


class TimedOperation:
    """
    Log how long a block took.

    Usage:
        with TimedOperation("telemetry shutdown", logger):
            ...
        # "telemetry shutdown completed", duration_ms=...
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[StructuredLogger] = None,
        log_level: int = logging.DEBUG,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.operation = operation
        self.logger = logger or get_logger("timed_operation")
        self.log_level = log_level
        self.extra = extra or {}
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None

    def __enter__(self) -> "TimedOperation":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        fields = {
            "operation": self.operation,
            "duration_ms": round(self.duration_ms, 2),
            **self.extra,
        }
        if exc_type:
            fields["error"] = str(exc_val)
            self.logger._log(logging.ERROR, f"{self.operation} failed", extra=fields)
        else:
            self.logger._log(self.log_level, f"{self.operation} completed", extra=fields)
