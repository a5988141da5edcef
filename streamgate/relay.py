"""
Relay Engine

Bridges one client WebSocket with one upstream WebSocket. Client frames
that arrive before upstream is ready wait in a bounded pending buffer; an
establishment timer reclaims sessions where upstream never opens and the
client never says anything. The relay does not inspect payloads.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

from websockets.asyncio.client import connect as websockets_connect

from streamgate.buffer import PendingBuffer
from streamgate.config import StreamgateConfig
from streamgate.errors import PendingBufferFull
from streamgate.models import Frame, UpstreamState
from streamgate.upstream import UpstreamConnector

LOG = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
GOING_AWAY = 1001
POLICY_VIOLATION = 1008
INTERNAL_ERROR = 1011

IDLE_REASON = "No activity after connection"
OVERFLOW_REASON = "Too many pending messages"

# Codes an endpoint may put in a close frame (RFC 6455 section 7.4).
SENDABLE_CLOSE_CODES = frozenset(
    {1000, 1001, 1002, 1003, 1007, 1008, 1009, 1010, 1011, 1012, 1013, 1014}
)
MAX_CLOSE_REASON_BYTES = 123


class Socket(Protocol):
    """One end of a session, as seen by the relay."""

    close_code: int | None
    close_reason: str

    @property
    def is_open(self) -> bool: ...

    def frames(self) -> AsyncIterator[Frame]: ...

    async def send(self, frame: Frame) -> None: ...

    async def close(self, code: int, reason: str) -> None: ...


def mirror_close(code: int | None, reason: str | None) -> tuple[int, str]:
    """Make a received close code and reason safe to send on the other leg."""
    if code is None or code == 1005:
        code = NORMAL_CLOSURE
    elif code not in SENDABLE_CLOSE_CODES and not 3000 <= code <= 4999:
        code = INTERNAL_ERROR

    encoded = (reason or "").encode("utf-8")
    if len(encoded) > MAX_CLOSE_REASON_BYTES:
        reason = encoded[:MAX_CLOSE_REASON_BYTES].decode("utf-8", errors="ignore")
    return code, reason or ""


class EstablishTimer:
    """
    One-shot timer on the running loop.

    ``cancel()`` is idempotent and does nothing once the timer has fired.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.fired = False
        self._handle: asyncio.TimerHandle | None = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None or self.fired:
            raise RuntimeError("Establishment timer already started")
        self._handle = asyncio.get_running_loop().call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fired = True
        self.callback()


class RelaySession:
    """
    One relayed connection between a client and the upstream endpoint.

    The caller accepts the client socket first, then runs the session:

        session = RelaySession(client, config.target_url(path, query), config)
        await session.run()

    ``run()`` returns once both legs are closed.
    """

    def __init__(
        self,
        client: Socket,
        target_url: str,
        config: StreamgateConfig,
        *,
        connect: Callable[..., Any] = websockets_connect,
    ) -> None:
        self.client = client
        self.target_url = target_url
        self.config = config
        self.upstream = UpstreamConnector(target_url, config, connect=connect)
        self.buffer: PendingBuffer | None = PendingBuffer(config.max_pending_frames)
        self.timer = EstablishTimer(config.establish_timeout_seconds, self.on_establish_timeout)
        self.rejected = False

    async def run(self) -> None:
        LOG.info("Relaying session to %s", self.target_url)
        self.timer.start()
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self.upstream_to_client())
                tg.create_task(self.client_to_upstream())
        finally:
            self.timer.cancel()
        LOG.info("Session to %s finished", self.target_url)

    async def close(self, code: int = GOING_AWAY, reason: str = "Going away") -> None:
        """Close both legs, as on server shutdown."""
        await self.close_socket(self.client, code, reason)
        if self.upstream.state is not UpstreamState.CLOSED:
            await self.upstream.close(code, reason)

    def on_establish_timeout(self) -> None:
        if self.upstream.state is not UpstreamState.CONNECTING:
            return
        if self.buffer:
            LOG.debug("Establishment timeout ignored, %d frames pending", len(self.buffer))
            return

        LOG.warning("WebSocket connection timeout for %s", self.target_url)
        self.upstream.abort(NORMAL_CLOSURE, IDLE_REASON)

    async def upstream_to_client(self) -> None:
        """Open upstream, flush pending frames, then forward upstream frames to the client."""
        if await self.upstream.open():
            await self.on_upstream_open()
            async for frame in self.upstream.frames():
                LOG.debug(
                    "Received frame from target server: %s",
                    frame.preview(self.config.log_preview_chars),
                )
                await self.forward(frame, self.client, "client")

        code, reason = mirror_close(self.upstream.close_code, self.upstream.close_reason)
        await self.close_socket(self.client, code, reason)

    async def on_upstream_open(self) -> None:
        self.timer.cancel()
        if self.buffer is None:
            return

        LOG.info("Processing %d pending frames", len(self.buffer))
        for frame in self.buffer.drain():
            await self.forward(frame, self.upstream, "target server")
        self.buffer = None

    async def client_to_upstream(self) -> None:
        try:
            async for frame in self.client.frames():
                await self.on_client_frame(frame)
        except Exception:
            LOG.exception("Error receiving from client")

        LOG.info(
            "Client connection closed: code=%s reason=%s",
            self.client.close_code,
            self.client.close_reason or "No reason provided",
        )
        code, reason = mirror_close(self.client.close_code, self.client.close_reason)
        if self.upstream.state is not UpstreamState.CLOSED:
            await self.upstream.close(code, reason)

    async def on_client_frame(self, frame: Frame) -> None:
        LOG.debug("Received frame from client: %s", frame.preview(self.config.log_preview_chars))

        if self.rejected:
            return

        if self.buffer is None:
            await self.forward(frame, self.upstream, "target server")
            return

        if self.upstream.state is UpstreamState.CLOSED:
            LOG.debug("Target server closed, dropping client frame")
            return

        try:
            self.buffer.push(frame)
        except PendingBufferFull:
            LOG.warning("Too many pending frames, closing client connection")
            self.rejected = True
            await self.close_socket(self.client, POLICY_VIOLATION, OVERFLOW_REASON)
            return

        LOG.debug("Connection not ready, queued frame (%d pending)", len(self.buffer))

    async def forward(self, frame: Frame, target: Socket, name: str) -> bool:
        """
        Send one frame, never raising.

        Returns False when the target was not open (the send is suppressed)
        or the send itself failed.
        """
        if not target.is_open:
            LOG.debug("%s not open, suppressing frame", name)
            return False

        try:
            await target.send(frame)
        except Exception:
            LOG.exception("Error forwarding frame to %s", name)
            return False
        return True

    async def close_socket(self, target: Socket, code: int, reason: str) -> None:
        if not target.is_open:
            return
        try:
            await target.close(code, reason)
        except Exception:
            LOG.exception("Error closing socket with code %s", code)
