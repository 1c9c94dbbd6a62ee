"""
instrumentation - API Layer

Provides:
- /hello, the instrumented demo endpoint
- Shared dependencies for routes
"""

from .dependencies import get_settings, get_telemetry
from .hello import router as hello_router

__all__ = [
    "hello_router",
    "get_settings",
    "get_telemetry",
]
