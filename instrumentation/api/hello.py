"""
instrumentation - Hello API

The instrumented demo endpoint. Every request waits, opens a span, records
the instrument set, logs and writes a fixed body.
"""

import asyncio
import time

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from ..config import Settings
from ..errors import ResponseWriteError
from ..observability.logging import get_logger
from ..observability.telemetry import Telemetry
from .dependencies import get_settings, get_telemetry


HELLO_BODY = "Hello World"

router = APIRouter(tags=["hello"])
logger = get_logger("api.hello")


def render_body(body: str) -> bytes:
    return body.encode("utf-8")


def write_body(body: str) -> bytes:
    """
    Produce the response payload.

    An ASGI handler returns its body to the server and never sees the
    socket write, so this is the last point a write can fail inside the
    handler: an unencodable body (lone surrogates) or an OS error while
    rendering.

    Raises:
        ResponseWriteError: the body could not be written
    """
    try:
        return render_body(body)
    except (OSError, ValueError) as e:
        raise ResponseWriteError(e) from e


@router.api_route(
    "/hello",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"],
)
async def hello(
    telemetry: Telemetry = Depends(get_telemetry),
    settings: Settings = Depends(get_settings),
):
    """
    Say hello.

    Returns `Hello World` as text/plain, or 500 `write operation failed.`
    when the body cannot be written.
    """
    if settings.hello_delay_seconds > 0:
        await asyncio.sleep(settings.hello_delay_seconds)

    with telemetry.start_span("helloHandler"):
        start = time.perf_counter()

        telemetry.instruments.record_request(logger)

        logger.start_logger("hello.py", "handler").info(HELLO_BODY)

        try:
            content = write_body(HELLO_BODY)
        finally:
            telemetry.instruments.record_response_time((time.perf_counter() - start) * 1000)

    return Response(content=content, media_type="text/plain")
