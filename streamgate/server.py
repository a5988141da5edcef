"""
Streamgate Server

Relays client WebSocket sessions to the upstream streaming endpoint.
The server is completely content-agnostic - it just moves frames.

This module provides a standalone server for use outside of FastAPI.
For FastAPI integration, use the router module instead.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import connect as websockets_connect
from websockets.asyncio.server import serve
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

if TYPE_CHECKING:
    from websockets.asyncio.server import Server, ServerConnection
    from websockets.http11 import Request, Response

from streamgate.config import StreamgateConfig
from streamgate.models import Frame
from streamgate.relay import GOING_AWAY, RelaySession

LOG = logging.getLogger(__name__)


class WebsocketsClient:
    """Client leg of a relay session on top of a ``websockets`` server connection."""

    def __init__(self, connection: "ServerConnection") -> None:
        self.connection = connection
        self.close_code: int | None = None
        self.close_reason = ""

    @property
    def is_open(self) -> bool:
        return self.connection.state is State.OPEN

    async def frames(self) -> AsyncIterator[Frame]:
        try:
            async for message in self.connection:
                yield Frame(message)
        except ConnectionClosed as exc:
            LOG.info("Client connection error: %s", exc)

        self.close_code = self.connection.close_code
        self.close_reason = self.connection.close_reason or ""

    async def send(self, frame: Frame) -> None:
        await self.connection.send(frame.data)

    async def close(self, code: int, reason: str) -> None:
        await self.connection.close(code, reason)


@dataclass
class RelayServer:
    """
    Standalone relay server.

    Each accepted connection gets its own RelaySession; the request path
    and query are carried over to the upstream URL.

    Usage:
        server = RelayServer(config)
        async with await server.serve("0.0.0.0", 8080) as ws_server:
            await ws_server.serve_forever()
    """

    config: StreamgateConfig = field(default_factory=StreamgateConfig)
    connect: Callable[..., Any] = field(default=websockets_connect, kw_only=True)
    active_sessions_set: set[RelaySession] = field(default_factory=set, init=False)
    on_connect: Callable[[str], Awaitable[None]] | None = field(default=None, kw_only=True)
    on_disconnect: Callable[[str], Awaitable[None]] | None = field(default=None, kw_only=True)
    ws_server: "Server | None" = field(default=None, init=False)

    @property
    def active_sessions(self) -> list[RelaySession]:
        """Sessions currently being relayed."""
        return list(self.active_sessions_set)

    async def serve(self, host: str, port: int) -> "Server":
        self.ws_server = await serve(
            self.handle_connection,
            host,
            port,
            process_request=self.process_request,
        )
        return self.ws_server

    def process_request(
        self,
        connection: "ServerConnection",
        request: "Request",
    ) -> "Response | None":
        """Reject plain HTTP requests before the handshake."""
        if request.headers.get("Upgrade", "").lower() != "websocket":
            return connection.respond(HTTPStatus.BAD_REQUEST, "Expected WebSocket connection\n")
        return None

    async def handle_connection(self, websocket: "ServerConnection") -> None:
        """
        Handle a client connection lifecycle.

        This method blocks until both legs of the session are closed.
        """
        path, _, query = websocket.request.path.partition("?")
        target_url = self.config.target_url(path, query)
        LOG.info("Target URL: %s", target_url)

        session = RelaySession(
            WebsocketsClient(websocket),
            target_url,
            self.config,
            connect=self.connect,
        )
        self.active_sessions_set.add(session)

        try:
            if self.on_connect:
                await self.on_connect(target_url)

            await session.run()

        except Exception:
            LOG.exception("Error in relay session to %s", target_url)

        finally:
            self.active_sessions_set.discard(session)

            if self.on_disconnect:
                await self.on_disconnect(target_url)

    async def shutdown(self) -> None:
        """Gracefully shutdown the server, closing every live session."""
        LOG.info("Shutting down relay server, %d active sessions", len(self.active_sessions_set))
        if self.ws_server is not None:
            # stop accepting new connections
            self.ws_server.close(close_connections=False)
        await asyncio.gather(
            *(session.close(GOING_AWAY, "Going away") for session in self.active_sessions),
            return_exceptions=True,
        )
