"""
streamgate - WebSocket and API Gateway

A transparent relay between end-user clients and a remote streaming
service. WebSocket sessions are relayed frame by frame, with client
frames buffered until the upstream connection is ready; API calls are
forwarded under a hard deadline.

The gateway does NOT inspect message payloads - it simply moves frames.
"""

from streamgate.app import create_app
from streamgate.buffer import PendingBuffer
from streamgate.config import StreamgateConfig
from streamgate.errors import (
    ApiTimeout,
    PendingBufferClosed,
    PendingBufferFull,
    StreamgateError,
    UpstreamError,
)
from streamgate.guard import guard
from streamgate.models import Frame, RouteKind, UpstreamState
from streamgate.relay import RelaySession
from streamgate.router import classify_request, router
from streamgate.server import RelayServer
from streamgate.upstream import UpstreamConnector

__all__ = [
    # App
    "create_app",
    "router",
    "classify_request",
    # Relay
    "RelaySession",
    "RelayServer",
    "UpstreamConnector",
    "PendingBuffer",
    "guard",
    # Models
    "Frame",
    "RouteKind",
    "UpstreamState",
    "StreamgateConfig",
    # Errors
    "StreamgateError",
    "ApiTimeout",
    "UpstreamError",
    "PendingBufferFull",
    "PendingBufferClosed",
]

__version__ = "0.1.0"
