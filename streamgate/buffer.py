"""Bounded FIFO of client frames held until the upstream connection is open."""

from collections import deque
from collections.abc import Iterator

from streamgate.errors import PendingBufferClosed, PendingBufferFull
from streamgate.models import Frame


class PendingBuffer:
    """
    Ordered frames waiting for the upstream socket.

    The buffer never grows past ``capacity``; a push on a full buffer raises
    ``PendingBufferFull`` so the caller can cut the producer off. ``drain()``
    hands frames out oldest first and discards the buffer once empty, after
    which any push raises ``PendingBufferClosed``.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must be >= 0")
        self.capacity = capacity
        self.discarded = False
        self._frames: deque[Frame] = deque()

    def __len__(self) -> int:
        return len(self._frames)

    @property
    def full(self) -> bool:
        return len(self._frames) >= self.capacity

    def push(self, frame: Frame) -> None:
        if self.discarded:
            raise PendingBufferClosed()
        if self.full:
            raise PendingBufferFull(self.capacity)
        self._frames.append(frame)

    def drain(self) -> Iterator[Frame]:
        """
        Yield buffered frames in arrival order.

        Frames pushed while the drain is suspended at a ``yield`` are yielded
        too, so nothing pushed before the buffer empties gets reordered.
        """
        while self._frames:
            yield self._frames.popleft()
        self.discarded = True
