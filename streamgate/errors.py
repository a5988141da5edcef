"""Exceptions raised by streamgate components."""


class StreamgateError(Exception):
    """Base class for gateway errors. ``status`` is the HTTP status to report."""

    status: int = 500


class ApiTimeout(StreamgateError):
    def __init__(self, timeout: float) -> None:
        super().__init__("API request timeout")
        self.timeout = timeout


class UpstreamError(StreamgateError):
    status = 502

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        if status is not None:
            self.status = status


class PendingBufferFull(StreamgateError):
    def __init__(self, capacity: int) -> None:
        super().__init__(f"Pending buffer is full ({capacity} frames)")
        self.capacity = capacity


class PendingBufferClosed(StreamgateError):
    def __init__(self) -> None:
        super().__init__("Pending buffer was already drained")
