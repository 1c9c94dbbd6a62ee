"""
instrumentation - API Dependencies

Route dependencies reading the objects the lifespan stored on app.state.
"""

from fastapi import Request

from ..config import Settings
from ..observability.telemetry import Telemetry


def get_telemetry(request: Request) -> Telemetry:
    """The Telemetry built at startup."""
    return request.app.state.telemetry


def get_settings(request: Request) -> Settings:
    """The Settings the app was created with."""
    return request.app.state.settings
