"""
Upstream Connector

Opens the outbound WebSocket to the remote streaming endpoint and reports
its readiness. There is no reconnection: once closed, the connector stays
closed and the session it belongs to ends.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import connect as websockets_connect
from websockets.exceptions import ConnectionClosedError
from websockets.protocol import State

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

from streamgate.config import StreamgateConfig
from streamgate.models import Frame, UpstreamState

LOG = logging.getLogger(__name__)

CONNECT_FAILED_CODE = 1011
ABNORMAL_CLOSURE_CODE = 1006


class UpstreamConnector:
    """
    Outbound half of a relay session.

    Usage:
        upstream = UpstreamConnector("wss://example.com/ws", config)
        if await upstream.open():
            async for frame in upstream.frames():
                ...
        print(upstream.close_code, upstream.close_reason)
    """

    def __init__(
        self,
        url: str,
        config: StreamgateConfig,
        *,
        connect: Callable[..., Any] = websockets_connect,
    ) -> None:
        self.url = url
        self.config = config
        self.connect = connect
        self.state = UpstreamState.CONNECTING
        self.connection: "ClientConnection | None" = None
        self.close_code: int | None = None
        self.close_reason = ""
        self._connect_task: asyncio.Task[Any] | None = None

    @property
    def is_open(self) -> bool:
        return (
            self.state is UpstreamState.OPEN
            and self.connection is not None
            and self.connection.state is State.OPEN
        )

    async def open(self) -> bool:
        """
        Connect to the target URL.

        Returns True once the connection is open. Returns False when the
        attempt failed or was abandoned through ``close()``; ``close_code``
        and ``close_reason`` then say why.
        """
        if self.state is not UpstreamState.CONNECTING:
            return False

        task = asyncio.create_task(self._connect())
        self._connect_task = task
        try:
            await asyncio.wait([task])
        finally:
            task.cancel()
            self._connect_task = None

        if task.cancelled():
            return False

        exc = task.exception()
        if exc is not None:
            LOG.error("Target server WebSocket error: %s", exc)
            self.mark_closed(CONNECT_FAILED_CODE, f"Upstream connection failed: {exc}")
            return False

        connection = task.result()
        if self.state is UpstreamState.CLOSED:
            # abandoned while the handshake was completing
            await connection.close(self.close_code or 1000, self.close_reason)
            return False

        self.connection = connection
        self.state = UpstreamState.OPEN
        LOG.info("Connected to target server %s", self.url)
        return True

    async def _connect(self) -> "ClientConnection":
        return await self.connect(
            self.url,
            open_timeout=self.config.upstream_open_timeout_seconds,
        )

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield frames from upstream until it closes, then record the close."""
        if self.connection is None:
            return

        try:
            async for message in self.connection:
                yield Frame(message)
        except ConnectionClosedError as exc:
            LOG.error("Target server WebSocket error: %s", exc)

        code = self.connection.close_code
        self.mark_closed(
            code if code is not None else ABNORMAL_CLOSURE_CODE,
            self.connection.close_reason or "",
        )

    async def send(self, frame: Frame) -> None:
        if self.connection is None:
            raise RuntimeError("Upstream connection is not open")
        await self.connection.send(frame.data)

    async def close(self, code: int, reason: str) -> None:
        """Close the upstream socket, abandoning the connect attempt if still pending."""
        if self.state is UpstreamState.CONNECTING:
            self.abort(code, reason)
        elif self.state is UpstreamState.OPEN and self.connection is not None:
            await self.connection.close(code, reason)

    def abort(self, code: int, reason: str) -> None:
        """Give up on a pending connect; ``open()`` then returns False."""
        if self.state is not UpstreamState.CONNECTING:
            return
        self.mark_closed(code, reason)
        if self._connect_task is not None:
            self._connect_task.cancel()

    def mark_closed(self, code: int, reason: str) -> None:
        if self.state is UpstreamState.CLOSED:
            return
        self.state = UpstreamState.CLOSED
        self.close_code = code
        self.close_reason = reason
        LOG.info(
            "Target server connection closed: code=%s reason=%s",
            code,
            reason or "No reason provided",
        )
