"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from instrumentation import __version__
from instrumentation.config import DEFAULT_OTLP_ENDPOINT, Settings
from instrumentation.errors import ConfigError, ErrorType


def test_defaults_when_environment_is_empty() -> None:
    settings = Settings.from_env({})

    assert settings.otlp_endpoint == "otel-collector:4317"
    assert settings.otlp_endpoint == DEFAULT_OTLP_ENDPOINT
    assert settings.service_name == "demo-server"
    assert settings.service_version == __version__
    assert settings.port == 8080
    assert settings.metric_export_interval_millis == 2000
    assert settings.shutdown_timeout_seconds == 5.0
    assert settings.hello_delay_seconds == 1.0
    assert settings.log_json is True
    assert settings.prometheus_enabled is True


def test_blank_endpoint_falls_back_to_default() -> None:
    settings = Settings.from_env({"OTEL_EXPORTER_OTLP_ENDPOINT": "  "})

    assert settings.otlp_endpoint == "otel-collector:4317"


def test_environment_overrides() -> None:
    settings = Settings.from_env(
        {
            "OTEL_EXPORTER_OTLP_ENDPOINT": "localhost:14317",
            "OTEL_SERVICE_NAME": "hello",
            "PORT": "9000",
            "METRIC_EXPORT_INTERVAL_MS": "500",
            "SHUTDOWN_TIMEOUT_SECONDS": "2.5",
            "HELLO_DELAY_SECONDS": "0",
            "LOG_LEVEL": "debug",
            "LOG_FORMAT": "text",
            "PROMETHEUS_ENABLED": "false",
        }
    )

    assert settings.otlp_endpoint == "localhost:14317"
    assert settings.service_name == "hello"
    assert settings.port == 9000
    assert settings.metric_export_interval_millis == 500
    assert settings.shutdown_timeout_seconds == 2.5
    assert settings.hello_delay_seconds == 0.0
    assert settings.log_level == "DEBUG"
    assert settings.log_json is False
    assert settings.prometheus_enabled is False


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "collector.internal:4317")

    assert Settings.from_env().otlp_endpoint == "collector.internal:4317"


@pytest.mark.parametrize(
    "env",
    [
        {"PORT": "http"},
        {"PORT": "70000"},
        {"METRIC_EXPORT_INTERVAL_MS": "0"},
        {"SHUTDOWN_TIMEOUT_SECONDS": "soon"},
        {"HELLO_DELAY_SECONDS": "-1"},
    ],
)
def test_invalid_values_raise_config_error(env) -> None:
    with pytest.raises(ConfigError) as exc_info:
        Settings.from_env(env)

    assert exc_info.value.error.type == ErrorType.STARTUP
    assert next(iter(env)) in str(exc_info.value)
