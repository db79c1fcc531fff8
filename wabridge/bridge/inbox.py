"""Multi-producer, single-consumer hand-off into an asyncio loop.

Engine callbacks arrive on foreign threads. They never touch bridge state;
they post an item here and return. One task on the loop drains the inbox,
so every state mutation happens in post order on a single execution context.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from typing import Any


class InboxClosed(Exception):
    """Raised by :meth:`Inbox.get` once the inbox is closed and empty."""


_CLOSED = object()


class Inbox:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[Any] | None = None
        self._pending: deque[Any] = deque()
        self._closed = False

    @property
    def attached(self) -> bool:
        return self._loop is not None

    def attach(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Binds the inbox to ``loop`` and releases items posted before it existed.

        Must be called from the loop's thread.
        """
        loop = loop or asyncio.get_running_loop()
        with self._lock:
            if self._loop is not None:
                raise RuntimeError("inbox is already attached to a loop")
            self._queue = asyncio.Queue()
            while self._pending:
                self._queue.put_nowait(self._pending.popleft())
            self._loop = loop

    def post(self, item: Any) -> bool:
        """Thread-safe, non-blocking. Items are delivered in post order.

        Returns False when the inbox is closed and the item was dropped.
        """
        with self._lock:
            if self._closed:
                return False
            if self._loop is None:
                self._pending.append(item)
                return True
            # under the lock, so a concurrent close() queues its sentinel after this item
            if self._loop.is_closed():
                return False
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
            return True

    def close(self) -> None:
        """Stops accepting items; the consumer sees :class:`InboxClosed` after the backlog."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._loop is None:
                self._pending.append(_CLOSED)
                return
            if not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._queue.put_nowait, _CLOSED)

    async def get(self) -> Any:
        if self._queue is None:
            raise RuntimeError("inbox is not attached to a loop")
        item = await self._queue.get()
        if item is _CLOSED:
            # leave the sentinel for any later get() call
            self._queue.put_nowait(_CLOSED)
            raise InboxClosed()
        return item
