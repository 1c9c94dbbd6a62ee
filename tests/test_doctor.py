"""Tests for preflight doctor checks."""

from __future__ import annotations

import socket

from scripts.doctor import run_doctor


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def test_doctor_passes_with_defaults() -> None:
    result = run_doctor(
        {"HOST": "127.0.0.1", "PORT": str(_free_port())},
        probe_collector=False,
    )
    assert result.ok is True
    assert result.messages[0] == "Doctor checks passed."


def test_doctor_fails_on_invalid_port() -> None:
    result = run_doctor({"PORT": "eighty"}, probe_collector=False)
    assert result.ok is False
    joined = "\n".join(result.messages)
    assert "PORT" in joined


def test_doctor_fails_when_endpoint_has_no_port() -> None:
    result = run_doctor(
        {
            "HOST": "127.0.0.1",
            "PORT": str(_free_port()),
            "OTEL_EXPORTER_OTLP_ENDPOINT": "otel-collector",
        },
        probe_collector=False,
    )
    assert result.ok is False
    assert "OTEL_EXPORTER_OTLP_ENDPOINT" in "\n".join(result.messages)


def test_doctor_accepts_endpoint_with_scheme() -> None:
    result = run_doctor(
        {
            "HOST": "127.0.0.1",
            "PORT": str(_free_port()),
            "OTEL_EXPORTER_OTLP_ENDPOINT": "http://localhost:4317",
        },
        probe_collector=False,
    )
    assert result.ok is True


def test_doctor_warns_when_collector_unreachable() -> None:
    result = run_doctor(
        {
            "HOST": "127.0.0.1",
            "PORT": str(_free_port()),
            "OTEL_EXPORTER_OTLP_ENDPOINT": f"127.0.0.1:{_free_port()}",
        }
    )
    assert result.ok is True
    joined = "\n".join(result.messages)
    assert "Warnings:" in joined
    assert "not reachable" in joined
