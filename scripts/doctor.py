"""Environment compatibility and preflight checks before starting the server."""

from __future__ import annotations

import os
import socket
import sys
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from instrumentation.config import Settings
from instrumentation.errors import ConfigError

MIN_PYTHON = (3, 10)


@dataclass
class DoctorResult:
    ok: bool
    messages: List[str]


def _python_version_tuple() -> Tuple[int, int, int]:
    v = sys.version_info
    return (v.major, v.minor, v.micro)


def _check_python_version(errors: List[str]) -> None:
    current = _python_version_tuple()
    if current[:2] < MIN_PYTHON:
        errors.append(
            f"Python {current[0]}.{current[1]} is unsupported. "
            f"Use Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]} or newer."
        )


def _load_settings(env: Mapping[str, str], errors: List[str]) -> Optional[Settings]:
    try:
        return Settings.from_env(env)
    except ConfigError as exc:
        errors.append(str(exc))
        return None


def _split_endpoint(endpoint: str) -> Tuple[str, Optional[int]]:
    """Split host:port, accepting an optional http(s):// scheme."""
    if "://" not in endpoint:
        endpoint = f"//{endpoint}"
    parts = urlsplit(endpoint)
    return parts.hostname or "", parts.port


def _check_collector(settings: Settings, errors: List[str], warnings: List[str], probe: bool) -> None:
    endpoint = settings.otlp_endpoint
    try:
        host, port = _split_endpoint(endpoint)
    except ValueError:
        errors.append(f"OTEL_EXPORTER_OTLP_ENDPOINT has an invalid port: `{endpoint}`.")
        return

    if not host or port is None:
        errors.append(
            f"OTEL_EXPORTER_OTLP_ENDPOINT must be host:port, got `{endpoint}`."
        )
        return

    if not probe:
        return

    try:
        with socket.create_connection((host, port), timeout=1.0):
            pass
    except OSError as exc:
        warnings.append(
            f"Collector {host}:{port} is not reachable ({exc}). "
            "Spans and metrics will be dropped until it is up."
        )


def _check_port_binding(settings: Settings, errors: List[str]) -> None:
    host = settings.host
    port = settings.port

    bind_host = "127.0.0.1" if host in {"0.0.0.0", "localhost", ""} else host
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((bind_host, port))
    except OSError as exc:
        errors.append(
            f"PORT/HOST conflict: cannot bind {bind_host}:{port} ({exc}). "
            "Pick a free port, e.g. `PORT=8090`."
        )
    finally:
        sock.close()


def run_doctor(env: Optional[Mapping[str, str]] = None, probe_collector: bool = True) -> DoctorResult:
    env_map: Mapping[str, str] = os.environ if env is None else env
    errors: List[str] = []
    warnings: List[str] = []

    _check_python_version(errors)
    settings = _load_settings(env_map, errors)
    if settings is not None:
        _check_collector(settings, errors, warnings, probe_collector)
        _check_port_binding(settings, errors)

    messages: List[str] = []
    if errors:
        messages.append("Doctor found configuration issues:")
        for i, msg in enumerate(errors, 1):
            messages.append(f"{i}. {msg}")
        messages.append("Fix the items above and rerun `python scripts/doctor.py`.")
    else:
        messages.append("Doctor checks passed.")

    if warnings:
        messages.append("Warnings:")
        for msg in warnings:
            messages.append(f"- {msg}")

    return DoctorResult(ok=not errors, messages=messages)


def main() -> int:
    result = run_doctor()
    print("\n".join(result.messages))
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
