"""Data types shared by the relay, the router and the servers."""

import enum
from dataclasses import dataclass


class UpstreamState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class RouteKind(enum.Enum):
    UPGRADE = "upgrade"
    BAD_UPGRADE = "bad_upgrade"
    API = "api"
    STATIC = "static"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class Frame:
    """
    A single WebSocket message.

    The payload is opaque: ``str`` for text frames, ``bytes`` for binary
    frames. The relay never looks inside it except to log a short preview.
    """

    data: str | bytes

    @property
    def is_binary(self) -> bool:
        return isinstance(self.data, bytes)

    def __len__(self) -> int:
        return len(self.data)

    def preview(self, limit: int) -> str:
        if self.is_binary:
            return f"<binary {len(self.data)} bytes>"
        return self.data[:limit]
