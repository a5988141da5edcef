import asyncio

import pytest
from websockets.asyncio.client import connect
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from streamgate.config import StreamgateConfig
from streamgate.server import RelayServer


def port_of(server) -> int:
    return server.sockets[0].getsockname()[1]


class EchoUpstream:
    def __init__(self) -> None:
        self.paths: list[str] = []
        self.closes: list[tuple[int | None, str | None]] = []
        self.closed = asyncio.Event()

    async def handler(self, websocket: ServerConnection) -> None:
        self.paths.append(websocket.request.path)
        try:
            async for message in websocket:
                await websocket.send(message)
        except ConnectionClosed:
            pass
        self.closes.append((websocket.close_code, websocket.close_reason))
        self.closed.set()


@pytest.fixture
async def upstream():
    echo = EchoUpstream()
    async with serve(echo.handler, "127.0.0.1", 0) as server:
        echo.port = port_of(server)
        yield echo


@pytest.fixture
async def gateway(upstream):
    config = StreamgateConfig(upstream_ws_base=f"ws://127.0.0.1:{upstream.port}")
    relay = RelayServer(config)
    async with await relay.serve("127.0.0.1", 0) as server:
        relay.url = f"ws://127.0.0.1:{port_of(server)}"
        yield relay


async def test_frames_relayed_both_ways(gateway, upstream):
    async with connect(f"{gateway.url}/ws/live?key=abc") as websocket:
        await websocket.send("hello")
        assert await websocket.recv() == "hello"

        await websocket.send(b"\x00\xff")
        assert await websocket.recv() == b"\x00\xff"

    assert upstream.paths == ["/ws/live?key=abc"]


async def test_client_close_reaches_upstream(gateway, upstream):
    async with connect(f"{gateway.url}/ws/live") as websocket:
        await websocket.send("ping")
        await websocket.recv()
        await websocket.close(1000, "bye")

    await asyncio.wait_for(upstream.closed.wait(), timeout=2)
    assert upstream.closes == [(1000, "bye")]


async def test_active_sessions_tracked(gateway, upstream):
    async with connect(f"{gateway.url}/ws/live") as websocket:
        await websocket.send("ping")
        await websocket.recv()
        assert len(gateway.active_sessions) == 1

    await asyncio.wait_for(upstream.closed.wait(), timeout=2)
    await asyncio.sleep(0.05)
    assert gateway.active_sessions == []


async def test_shutdown_closes_sessions(gateway, upstream):
    async with connect(f"{gateway.url}/ws/live") as websocket:
        await websocket.send("ping")
        await websocket.recv()

        await gateway.shutdown()

        with pytest.raises(ConnectionClosed):
            await websocket.recv()
        assert websocket.close_code == 1001

    await asyncio.wait_for(upstream.closed.wait(), timeout=2)
    assert upstream.closes == [(1001, "Going away")]


async def test_plain_http_request_rejected(gateway):
    host, port = gateway.url.removeprefix("ws://").split(":")
    reader, writer = await asyncio.open_connection(host, int(port))
    writer.write(b"GET /ws/live HTTP/1.1\r\nHost: localhost\r\n\r\n")
    await writer.drain()

    status_line = await reader.readline()
    writer.close()

    assert status_line.startswith(b"HTTP/1.1 400")


async def test_shutdown_stops_accepting(gateway, upstream):
    await gateway.shutdown()
    await asyncio.sleep(0.05)

    with pytest.raises((OSError, InvalidHandshake)):
        async with connect(f"{gateway.url}/ws/live", open_timeout=1):
            pass

    assert gateway.active_sessions == []
