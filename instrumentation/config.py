"""
instrumentation - Configuration

Settings are read once from the environment at startup.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from . import __version__
from .errors import ConfigError


DEFAULT_OTLP_ENDPOINT = "otel-collector:4317"
DEFAULT_SERVICE_NAME = "demo-server"


def _is_truthy(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(key, raw, "expected an integer")
    if value < minimum:
        raise ConfigError(key, raw, f"must be >= {minimum}")
    return value


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(key, raw, "expected a number")
    if value < 0:
        raise ConfigError(key, raw, "must not be negative")
    return value


@dataclass(frozen=True)
class Settings:
    """Service settings."""
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT
    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = __version__
    host: str = "0.0.0.0"
    port: int = 8080
    metric_export_interval_millis: int = 2000
    shutdown_timeout_seconds: float = 5.0
    hello_delay_seconds: float = 1.0
    log_level: str = "INFO"
    log_json: bool = True
    prometheus_enabled: bool = True

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Missing or empty variables fall back to the defaults.

        Raises:
            ConfigError: a numeric variable could not be parsed
        """
        env = os.environ if env is None else env

        port = _parse_int(env, "PORT", cls.port, minimum=1)
        if port > 65535:
            raise ConfigError("PORT", str(port), "must be <= 65535")

        return cls(
            otlp_endpoint=env.get("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip() or DEFAULT_OTLP_ENDPOINT,
            service_name=env.get("OTEL_SERVICE_NAME", "").strip() or DEFAULT_SERVICE_NAME,
            service_version=env.get("SERVICE_VERSION", "").strip() or __version__,
            host=env.get("HOST", "").strip() or cls.host,
            port=port,
            metric_export_interval_millis=_parse_int(
                env, "METRIC_EXPORT_INTERVAL_MS", cls.metric_export_interval_millis, minimum=1
            ),
            shutdown_timeout_seconds=_parse_float(
                env, "SHUTDOWN_TIMEOUT_SECONDS", cls.shutdown_timeout_seconds
            ),
            hello_delay_seconds=_parse_float(env, "HELLO_DELAY_SECONDS", cls.hello_delay_seconds),
            log_level=env.get("LOG_LEVEL", "").strip().upper() or cls.log_level,
            log_json=(env.get("LOG_FORMAT", "").strip().lower() or "json") == "json",
            prometheus_enabled=_is_truthy(env.get("PROMETHEUS_ENABLED", "true")),
        )
