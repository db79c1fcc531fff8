"""Ordered buffer of outbound frames waiting for an open channel."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator

from wabridge.core.errors import FrameQueueFull


class FrameQueue:
    """FIFO of opaque frames.

    Unbounded unless ``max_frames`` is given. A bounded queue refuses new
    frames with :class:`FrameQueueFull` rather than dropping old ones, since
    the engine's stream cannot survive a silent gap.

    Not thread-safe: the owning connection manager touches it from a single
    task only.
    """

    def __init__(self, max_frames: int | None = None) -> None:
        if max_frames is not None and max_frames <= 0:
            raise ValueError("max_frames must be > 0")
        self.max_frames = max_frames
        self._frames: deque[bytes] = deque()

    def enqueue(self, frame: bytes) -> None:
        if self.max_frames is not None and len(self._frames) >= self.max_frames:
            raise FrameQueueFull(self.max_frames)
        self._frames.append(frame)

    def drain_all(self) -> list[bytes]:
        """Returns every queued frame in order and leaves the queue empty."""
        drained = list(self._frames)
        self._frames.clear()
        return drained

    def requeue_front(self, frames: Iterable[bytes]) -> None:
        """Puts an unsent prefix back ahead of anything queued since the drain."""
        # bound is not enforced here; these frames were already accepted once
        self._frames.extendleft(reversed(list(frames)))

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._frames)
