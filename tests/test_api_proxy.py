import gzip

import httpx
import pytest
from starlette.requests import Request

from streamgate.api_proxy import fetch
from streamgate.config import StreamgateConfig
from streamgate.errors import UpstreamError


def make_request(body: bytes, headers: list[tuple[bytes, bytes]], method: str = "POST") -> Request:
    async def receive() -> dict:
        return {"type": "http.request", "body": body, "more_body": False}

    scope = {
        "type": "http",
        "method": method,
        "scheme": "http",
        "server": ("gateway.test", 80),
        "path": "/v1/chat/completions",
        "query_string": b"alt=sse",
        "headers": [(b"host", b"gateway.test"), *headers],
    }
    return Request(scope, receive)


@pytest.fixture
def config() -> StreamgateConfig:
    return StreamgateConfig(upstream_http_base="https://upstream.test")


async def test_request_body_and_encoding_forwarded(config):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"{}")

    body = gzip.compress(b'{"model": "m"}')
    request = make_request(body, [(b"content-encoding", b"gzip"), (b"content-type", b"application/json")])

    response = await fetch(request, config, transport=httpx.MockTransport(handler))

    assert response.status_code == 200
    upstream = seen[0]
    assert str(upstream.url) == "https://upstream.test/v1/chat/completions?alt=sse"
    assert upstream.headers["content-encoding"] == "gzip"
    assert upstream.headers["host"] == "upstream.test"
    assert upstream.content == body
    assert gzip.decompress(upstream.content) == b'{"model": "m"}'


async def test_repeated_response_headers_kept(config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[("set-cookie", "a=1"), ("set-cookie", "b=2"), ("content-type", "application/json")],
            content=b"{}",
        )

    response = await fetch(make_request(b"", []), config, transport=httpx.MockTransport(handler))

    cookies = [value for name, value in response.raw_headers if name == b"set-cookie"]
    assert cookies == [b"a=1", b"b=2"]
    assert response.headers["content-type"] == "application/json"


async def test_decoded_response_drops_content_encoding(config):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-encoding": "gzip"},
            content=gzip.compress(b"hello"),
        )

    response = await fetch(make_request(b"", []), config, transport=httpx.MockTransport(handler))

    assert response.body == b"hello"
    assert "content-encoding" not in response.headers
    assert response.headers["content-length"] == "5"


async def test_transport_error_raises_upstream_error(config):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    with pytest.raises(UpstreamError) as exc_info:
        await fetch(make_request(b"", []), config, transport=httpx.MockTransport(handler))

    assert exc_info.value.status == 502
