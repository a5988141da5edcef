"""
FastAPI Router for the streamgate gateway

A catch-all WebSocket route relays sessions to the upstream streaming
endpoint; a catch-all HTTP route sends API calls through the timeout
guard and serves static assets. Payloads are never inspected.
"""

import logging
from collections.abc import AsyncIterator, Mapping
from typing import Any

from fastapi import APIRouter, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response
from starlette.websockets import WebSocketState

from streamgate.config import StreamgateConfig
from streamgate.guard import handle_api_request
from streamgate.models import Frame, RouteKind
from streamgate.relay import RelaySession
from streamgate.static import StaticAssets

LOG = logging.getLogger(__name__)

router = APIRouter(tags=["streamgate"])

HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_config(app: Any) -> StreamgateConfig:
    config = app.extra.get("streamgate_config")
    if config is None:
        config = StreamgateConfig()
    elif not isinstance(config, StreamgateConfig):
        config = StreamgateConfig.model_validate(config)
    return config


def classify_request(path: str, headers: Mapping[str, str], config: StreamgateConfig) -> RouteKind:
    """Decide which handler owns a request. Pure: looks only at the path and headers."""
    lowered = {name.lower(): value for name, value in headers.items()}
    if lowered.get("upgrade", "").lower() == "websocket":
        return RouteKind.UPGRADE
    if path.startswith(config.socket_path_prefix):
        return RouteKind.BAD_UPGRADE
    if path.endswith(tuple(config.api_path_suffixes)):
        return RouteKind.API
    if config.static_dir is not None:
        return RouteKind.STATIC
    return RouteKind.NOT_FOUND


class StarletteClient:
    """Client leg of a relay session on top of a FastAPI/Starlette WebSocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.close_code: int | None = None
        self.close_reason = ""

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state is WebSocketState.CONNECTED
            and self.websocket.application_state is WebSocketState.CONNECTED
        )

    async def frames(self) -> AsyncIterator[Frame]:
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                self.close_code = message.get("code", 1000)
                self.close_reason = message.get("reason") or ""
                return

            if message.get("bytes") is not None:
                yield Frame(message["bytes"])
            else:
                yield Frame(message.get("text") or "")

    async def send(self, frame: Frame) -> None:
        if frame.is_binary:
            await self.websocket.send_bytes(frame.data)
        else:
            await self.websocket.send_text(frame.data)

    async def close(self, code: int, reason: str) -> None:
        await self.websocket.close(code, reason)


@router.websocket("/{path:path}")
async def relay_websocket(websocket: WebSocket, path: str) -> None:
    """
    WebSocket endpoint relaying to the upstream streaming service.

    The inbound path and query string are appended verbatim to the
    configured upstream base URL.
    """
    config = get_config(websocket.app)
    await websocket.accept()

    target_url = config.target_url(websocket.url.path, websocket.url.query)
    LOG.info("Target URL: %s", target_url)

    session = RelaySession(StarletteClient(websocket), target_url, config)
    try:
        await session.run()
    except Exception:
        LOG.exception("Error in relay session to %s", target_url)


@router.api_route("/{path:path}", methods=HTTP_METHODS)
async def dispatch(request: Request, path: str) -> Response:
    config = get_config(request.app)
    kind = classify_request(request.url.path, request.headers, config)

    if kind in (RouteKind.UPGRADE, RouteKind.BAD_UPGRADE):
        return PlainTextResponse("Expected WebSocket connection", status_code=400)

    if kind is RouteKind.API:
        return await handle_api_request(request, config)

    if kind is RouteKind.STATIC:
        assets = StaticAssets(config, request.app.extra.get("redis"))
        response = await assets.serve(request.url.path)
        if response is not None:
            return response

    return PlainTextResponse("Not found", status_code=404)
