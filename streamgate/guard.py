"""
HTTP Timeout Guard

Runs a single forwarded API call under a hard deadline and turns every
failure into a plain-text response. Nothing raised by the forward call
escapes to the caller.
"""

import asyncio
import importlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.requests import Request
from starlette.responses import Response

from streamgate.config import StreamgateConfig
from streamgate.errors import ApiTimeout

LOG = logging.getLogger(__name__)

ERROR_CONTENT_TYPE = "text/plain;charset=UTF-8"


def error_response(message: str, status: int = 500) -> Response:
    return Response(message, status_code=status, headers={"content-type": ERROR_CONTENT_TYPE})


async def guard(forward: Callable[[], Awaitable[Response]], timeout: float) -> Response:
    """
    Race ``forward()`` against ``timeout`` seconds.

    The forward call is cancelled if the deadline passes first. A response
    returned by the forward call is passed through as is, whatever its
    status.
    """
    deadline = asyncio.timeout(timeout)
    try:
        async with deadline:
            return await forward()
    except Exception as exc:
        if deadline.expired():
            exc = ApiTimeout(timeout)
        LOG.error("API request error: %s", exc)
        message = str(exc) or "Unknown error occurred"
        status = getattr(exc, "status", None) or 500
        return error_response(message, status)


def load_forwarder(module_name: str) -> Callable[[Request, StreamgateConfig], Awaitable[Response]]:
    """Import the API proxy module and return its ``fetch`` coroutine function."""
    module: Any = importlib.import_module(module_name)
    return module.fetch


async def handle_api_request(request: Request, config: StreamgateConfig) -> Response:
    async def forward() -> Response:
        fetch = load_forwarder(config.api_proxy_module)
        return await fetch(request, config)

    return await guard(forward, config.api_timeout_seconds)
