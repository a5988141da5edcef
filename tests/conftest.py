import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from streamgate.config import StreamgateConfig
from streamgate.models import Frame


@dataclass
class Closed:
    code: int
    reason: str


class FakeClient:
    """In-memory client leg: the test pushes frames in and reads what was sent out."""

    def __init__(self, *, ack_close: bool = True) -> None:
        self.inbox: asyncio.Queue[Frame | Closed] = asyncio.Queue()
        self.sent: list[Frame] = []
        self.closed_with: tuple[int, str] | None = None
        self.close_code: int | None = None
        self.close_reason = ""
        self.ack_close = ack_close
        self.open = True

    @property
    def is_open(self) -> bool:
        return self.open

    def push(self, data: str | bytes) -> None:
        self.inbox.put_nowait(Frame(data))

    def disconnect(self, code: int, reason: str) -> None:
        self.inbox.put_nowait(Closed(code, reason))

    async def frames(self) -> AsyncIterator[Frame]:
        while True:
            item = await self.inbox.get()
            if isinstance(item, Closed):
                self.open = False
                self.close_code = item.code
                self.close_reason = item.reason
                return
            yield item

    async def send(self, frame: Frame) -> None:
        self.sent.append(frame)

    async def close(self, code: int, reason: str) -> None:
        self.closed_with = (code, reason)
        self.open = False
        if self.ack_close:
            self.disconnect(code, reason)


class FakeConnection:
    """Stands in for a websockets ClientConnection."""

    def __init__(self) -> None:
        self.state = State.OPEN
        self.received: list[str | bytes] = []
        self.incoming: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.fail_sends = 0

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        return self.messages()

    async def messages(self) -> AsyncIterator[str | bytes]:
        while True:
            item = await self.incoming.get()
            if item is None:
                return
            yield item

    def feed(self, data: str | bytes) -> None:
        self.incoming.put_nowait(data)

    async def send(self, data: str | bytes) -> None:
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        if self.fail_sends:
            self.fail_sends -= 1
            raise OSError("connection reset")
        self.received.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.remote_close(code, reason)

    def remote_close(self, code: int, reason: str) -> None:
        if self.state is State.OPEN:
            self.state = State.CLOSED
            self.close_code = code
            self.close_reason = reason
            self.incoming.put_nowait(None)


class FakeUpstream:
    """Connect callable whose handshake completes when the test says so."""

    def __init__(self) -> None:
        self.ready = asyncio.Event()
        self.connection = FakeConnection()
        self.error: Exception | None = None
        self.urls: list[str] = []
        self.attempts = 0

    async def connect(self, url: str, **kwargs: object) -> FakeConnection:
        self.urls.append(url)
        self.attempts += 1
        await self.ready.wait()
        if self.error is not None:
            raise self.error
        return self.connection


async def settle(delay: float = 0.02) -> None:
    await asyncio.sleep(delay)


@pytest.fixture
def config() -> StreamgateConfig:
    return StreamgateConfig(
        upstream_ws_base="wss://upstream.test",
        establish_timeout_seconds=5.0,
        max_pending_frames=10,
    )


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()
