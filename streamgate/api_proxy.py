"""
Default API proxy

Forwards an API call to the upstream HTTP endpoint without touching the
body. Deployments that need request translation point
``StreamgateConfig.api_proxy_module`` at their own module exposing the same
``fetch(request, config)`` coroutine.
"""

import logging
from collections.abc import Iterable

import httpx
from starlette.requests import Request
from starlette.responses import Response

from streamgate.config import StreamgateConfig
from streamgate.errors import UpstreamError

LOG = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
        "content-length",
    }
)

# httpx hands back a decoded body, so its encoding label no longer applies.
RESPONSE_SKIP_HEADERS = HOP_BY_HOP_HEADERS | {"content-encoding"}


def end_to_end_headers(
    headers: Iterable[tuple[str, str]],
    skip: frozenset[str] = HOP_BY_HOP_HEADERS,
) -> list[tuple[str, str]]:
    return [(name, value) for name, value in headers if name.lower() not in skip]


async def fetch(
    request: Request,
    config: StreamgateConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Response:
    url = config.forward_url(request.url.path, request.url.query)
    body = await request.body()

    LOG.debug("Forwarding %s %s", request.method, url)

    try:
        async with httpx.AsyncClient(timeout=None, transport=transport) as client:
            upstream = await client.request(
                request.method,
                url,
                headers=end_to_end_headers(request.headers.items()),
                content=body,
            )
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Upstream request failed: {exc}") from exc

    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, value in end_to_end_headers(upstream.headers.multi_items(), RESPONSE_SKIP_HEADERS):
        response.raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
    return response
