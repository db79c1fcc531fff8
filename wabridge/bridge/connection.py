"""Channel lifecycle and the outbound frame path.

:class:`ConnectionManager` is only ever driven from the bridge's transport
pump, so its state and its :class:`FrameQueue` see one caller at a time.
Background work it starts (connecting, reconnect timers) reports back by
posting items into that same pump instead of touching state directly.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from wabridge.bridge.frame_queue import FrameQueue
from wabridge.bridge.relay import ErrorReporter, LifecycleNotifier
from wabridge.core.errors import FrameQueueFull, TransportError

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    RECONNECTING = "reconnecting"


class Channel(Protocol):
    on_open: Optional[Callable[[], None]]
    on_message: Optional[Callable[[bytes], None]]
    on_close: Optional[Callable[[Optional[BaseException]], None]]
    on_error: Optional[Callable[[BaseException], None]]

    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def send(self, data: bytes) -> None: ...


@dataclass(frozen=True)
class ChannelOpened:
    pass


@dataclass(frozen=True)
class ChannelClosed:
    reason: Optional[BaseException] = None


@dataclass(frozen=True)
class ChannelFailed:
    error: BaseException


@dataclass(frozen=True)
class ReconnectDue:
    pass


class ConnectionManager:
    def __init__(
        self,
        channel: Channel,
        notifier: LifecycleNotifier,
        report_error: ErrorReporter,
        post: Callable[[Any], None],
        *,
        max_queued_frames: int | None = None,
        reconnect: bool = False,
        max_reconnect_attempts: int = 5,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
    ) -> None:
        self.channel = channel
        self.queue = FrameQueue(max_frames=max_queued_frames)
        self._notifier = notifier
        self._report_error = report_error
        self._post = post
        self._state = ConnectionState.DISCONNECTED

        self.reconnect = reconnect
        self.max_reconnect_attempts = max_reconnect_attempts
        self.reconnect_base_delay = reconnect_base_delay
        self.reconnect_max_delay = reconnect_max_delay
        self._reconnect_attempts = 0

        self._connect_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._shutting_down = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.debug("connection %s -> %s", self._state.value, state.value, extra={"state": state.value})
            self._state = state

    def open(self) -> bool:
        """Starts connecting the channel; returns False when already connecting or open."""
        if self._shutting_down:
            return False
        if self._state not in (ConnectionState.DISCONNECTED, ConnectionState.CLOSED):
            logger.debug("open() ignored in state %s", self._state.value)
            return False
        self._set_state(ConnectionState.CONNECTING)
        self._connect_task = asyncio.create_task(self._connect())
        return True

    async def _connect(self) -> None:
        try:
            await self.channel.connect()
        except Exception as exc:
            self._post(ChannelFailed(exc))

    async def on_channel_open(self) -> None:
        if self._state is ConnectionState.OPEN:
            logger.debug("duplicate channel open signal ignored")
            return
        self._set_state(ConnectionState.OPEN)
        self._reconnect_attempts = 0
        logger.info("channel open, flushing %d queued frames", len(self.queue), extra={"frames": len(self.queue)})
        if await self._flush():
            self._notifier.connected()

    async def _flush(self) -> bool:
        pending = self.queue.drain_all()
        for index, frame in enumerate(pending):
            try:
                await self.channel.send(frame)
            except Exception as exc:
                self.queue.requeue_front(pending[index:])
                await self._on_send_failed(exc)
                return False
        return True

    async def submit_frame(self, frame: bytes) -> None:
        """Sends now when open, otherwise queues behind earlier frames."""
        if self._state is ConnectionState.OPEN:
            try:
                await self.channel.send(frame)
            except Exception as exc:
                self.queue.requeue_front([frame])
                await self._on_send_failed(exc)
            return

        try:
            self.queue.enqueue(frame)
        except FrameQueueFull as exc:
            logger.warning("rejecting outbound frame of %d bytes: %s", len(frame), exc)
            self._report_error(exc)
            return
        logger.debug(
            "channel not open, queued frame of %d bytes", len(frame), extra={"frames": len(self.queue)}
        )

    async def _on_send_failed(self, exc: BaseException) -> None:
        logger.warning("channel send failed, %d frames held for the next open: %s", len(self.queue), exc)
        self._report_error(exc if isinstance(exc, TransportError) else TransportError(f"send failed: {exc}"))
        await self.channel.disconnect()
        await self.on_channel_close(exc)

    async def on_channel_failed(self, exc: BaseException) -> None:
        logger.warning("channel error: %s", exc)
        self._report_error(exc if isinstance(exc, TransportError) else TransportError(str(exc)))
        await self.on_channel_close(exc)

    async def on_channel_close(self, reason: BaseException | None = None) -> None:
        previous = self._state
        if previous not in (ConnectionState.CONNECTING, ConnectionState.OPEN):
            logger.debug("close signal ignored in state %s", previous.value)
            return
        self._set_state(ConnectionState.CLOSED)
        if previous is ConnectionState.OPEN:
            logger.info("channel closed: %s", reason or "normal closure")
            self._notifier.disconnected()
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if not self.reconnect or self._shutting_down:
            return
        if self._reconnect_attempts >= self.max_reconnect_attempts:
            logger.error("giving up after %d reconnect attempts", self._reconnect_attempts)
            self._report_error(
                TransportError(f"channel could not be reopened after {self._reconnect_attempts} attempts")
            )
            return
        delay = min(self.reconnect_base_delay * (2 ** self._reconnect_attempts), self.reconnect_max_delay)
        self._reconnect_attempts += 1
        self._set_state(ConnectionState.RECONNECTING)
        logger.info("reconnecting in %.1fs (attempt %d)", delay, self._reconnect_attempts)
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._post(ReconnectDue())

    def on_reconnect_due(self) -> None:
        if self._state is not ConnectionState.RECONNECTING:
            return
        self._set_state(ConnectionState.CLOSED)
        self.open()

    async def shutdown(self) -> None:
        """Closes the channel for good; the engine sees one final disconnect if it was connected."""
        self._shutting_down = True
        for task in (self._reconnect_task, self._connect_task):
            if task is not None and not task.done():
                task.cancel()
        self._reconnect_task = None
        self._connect_task = None
        await self.channel.disconnect()
        await self.on_channel_close(None)
        if self._state is ConnectionState.RECONNECTING:
            self._set_state(ConnectionState.CLOSED)
