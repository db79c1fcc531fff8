"""Bridge between one protocol engine and one duplex channel.

Two single-consumer pumps run on the owning event loop:

* the transport pump serializes everything that touches connection state
  and the frame queue (frames from the engine, channel open/close/data,
  reconnect timers, shutdown);
* the event pump decodes engine notifications and runs subscribers, so a
  slow handler never delays frame delivery.

Engine callbacks only post into these pumps, from whatever thread the
engine calls them on.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Optional

from wabridge.bridge.connection import (
    Channel,
    ChannelClosed,
    ChannelFailed,
    ChannelOpened,
    ConnectionManager,
    ConnectionState,
    ReconnectDue,
)
from wabridge.bridge.dispatcher import EventDispatcher, HandlerFn
from wabridge.bridge.inbox import Inbox, InboxClosed
from wabridge.bridge.relay import InboundRelay, LifecycleNotifier
from wabridge.core.errors import EngineError, EngineReportedError, TransportError
from wabridge.core.events import EventTag
from wabridge.core.jid import parse_jid
from wabridge.defaults.config import DEFAULT_BRIDGE_CONFIG
from wabridge.engine.base import EngineFactory, describe_engine
from wabridge.infra.http import HttpExecutor, HttpRequest, HttpResponse
from wabridge.infra.websocket import WebSocketChannel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameOut:
    frame: bytes


@dataclass(frozen=True)
class ChannelData:
    data: bytes


@dataclass(frozen=True)
class OpenChannel:
    pass


@dataclass(frozen=True)
class Shutdown:
    done: asyncio.Future


@dataclass(frozen=True)
class EngineNotification:
    err: Optional[BaseException]
    payload: Any


@dataclass(frozen=True)
class ErrorReport:
    error: BaseException


class Bridge:
    def __init__(
        self,
        engine_factory: EngineFactory,
        db_path: str,
        channel: Channel | None = None,
        **config_overrides: Any,
    ) -> None:
        self.config: dict[str, Any] = {**DEFAULT_BRIDGE_CONFIG, **config_overrides}
        self.db_path = db_path
        self.dispatcher = EventDispatcher()

        self._transport_inbox = Inbox()
        self._event_inbox = Inbox()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._http: HttpExecutor | None = None

        # construction failures (unusable db_path) propagate to the caller
        self.engine = engine_factory(
            db_path,
            self._on_engine_event,
            self._on_engine_frame,
            execute_http=self.execute_http,
        )
        logger.debug("constructed engine %s for %s", describe_engine(self.engine), db_path)

        self.channel = channel or WebSocketChannel(
            url=self.config["ws_url"],
            origin=self.config["origin"],
            connect_timeout=float(self.config["connect_timeout"]),
        )
        self.channel.on_open = lambda: self._transport_inbox.post(ChannelOpened())
        self.channel.on_message = lambda data: self._transport_inbox.post(ChannelData(data))
        self.channel.on_close = lambda reason: self._transport_inbox.post(ChannelClosed(reason))
        self.channel.on_error = lambda exc: self._report_error(
            exc if isinstance(exc, TransportError) else TransportError(str(exc))
        )

        self.relay = InboundRelay(self.engine, self._report_error)
        self.notifier = LifecycleNotifier(self.engine, self._report_error)
        self.connection = ConnectionManager(
            self.channel,
            self.notifier,
            self._report_error,
            self._transport_inbox.post,
            max_queued_frames=self.config["max_queued_frames"],
            reconnect=bool(self.config["reconnect"]),
            max_reconnect_attempts=int(self.config["max_reconnect_attempts"]),
            reconnect_base_delay=float(self.config["reconnect_base_delay"]),
            reconnect_max_delay=float(self.config["reconnect_max_delay"]),
        )

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def queued_frames(self) -> int:
        return len(self.connection.queue)

    def on(self, tag: EventTag | str, handler: HandlerFn | None = None):
        return self.dispatcher.on(tag, handler)

    async def run(self) -> None:
        """Opens the channel and runs the engine until its session ends."""
        if self._loop is not None:
            raise RuntimeError("bridge has already been started")
        self._loop = asyncio.get_running_loop()
        self._transport_inbox.attach(self._loop)
        self._event_inbox.attach(self._loop)
        self._http = HttpExecutor(timeout=float(self.config["http_timeout"]))
        transport_task = asyncio.create_task(self._transport_pump())
        event_task = asyncio.create_task(self._event_pump())

        self._transport_inbox.post(OpenChannel())
        try:
            await self.engine.start()
            logger.info("engine session ended")
        finally:
            await self._shutdown(transport_task, event_task)

    async def send_message(self, jid: str, text: str) -> str:
        """Sends ``text`` to ``jid`` through the engine; rejections propagate, no retry."""
        target = parse_jid(jid)
        return await self.engine.send_message(str(target), text)

    def execute_http(self, request: HttpRequest) -> "Future[HttpResponse]":
        """Thread-safe: runs ``request`` on the bridge loop and returns a concurrent future."""
        loop = self._loop
        if loop is None or loop.is_closed() or self._http is None:
            fut: Future[HttpResponse] = Future()
            fut.set_exception(EngineError("bridge is not running"))
            return fut
        return asyncio.run_coroutine_threadsafe(self._http.execute(request), loop)

    # engine callbacks, called from the engine's thread

    def _on_engine_event(self, err: Optional[BaseException], payload: Any) -> None:
        self._event_inbox.post(EngineNotification(err, payload))

    def _on_engine_frame(self, err: Optional[BaseException], frame: Any) -> None:
        if err is not None:
            self._report_error(EngineReportedError(err, source="frame"))
            return
        if frame is None:
            self._report_error(EngineError("engine produced an empty frame"))
            return
        self._transport_inbox.post(FrameOut(bytes(frame)))

    def _report_error(self, error: BaseException) -> None:
        self._event_inbox.post(ErrorReport(error))

    # pumps

    async def _transport_pump(self) -> None:
        while True:
            try:
                item = await self._transport_inbox.get()
            except InboxClosed:
                return
            try:
                await self._handle_transport(item)
            except Exception as exc:
                logger.exception("transport step %s failed", type(item).__name__)
                self._report_error(exc)

    async def _handle_transport(self, item: Any) -> None:
        if isinstance(item, FrameOut):
            await self.connection.submit_frame(item.frame)
        elif isinstance(item, ChannelData):
            self.relay.relay(item.data)
        elif isinstance(item, ChannelOpened):
            await self.connection.on_channel_open()
        elif isinstance(item, ChannelClosed):
            await self.connection.on_channel_close(item.reason)
        elif isinstance(item, ChannelFailed):
            await self.connection.on_channel_failed(item.error)
        elif isinstance(item, ReconnectDue):
            self.connection.on_reconnect_due()
        elif isinstance(item, OpenChannel):
            self.connection.open()
        elif isinstance(item, Shutdown):
            try:
                await self.connection.shutdown()
            finally:
                if not item.done.done():
                    item.done.set_result(None)
        else:
            raise TypeError(f"unexpected transport item {item!r}")

    async def _event_pump(self) -> None:
        while True:
            try:
                item = await self._event_inbox.get()
            except InboxClosed:
                return
            try:
                if isinstance(item, EngineNotification):
                    await self.dispatcher.notify(item.err, item.payload)
                elif isinstance(item, ErrorReport):
                    await self.dispatcher.report(item.error)
            except Exception:
                logger.exception("event dispatch failed")

    async def _shutdown(self, transport_task: asyncio.Task, event_task: asyncio.Task) -> None:
        done = self._loop.create_future()
        self._transport_inbox.post(Shutdown(done))
        await asyncio.wait({done, transport_task}, return_when=asyncio.FIRST_COMPLETED)
        self._transport_inbox.close()
        await transport_task
        # the event pump drains what is left, including errors raised while closing
        self._event_inbox.close()
        await event_task
        if self._http is not None:
            await self._http.aclose()
            self._http = None
        logger.debug("bridge stopped in state %s", self.state.value, extra={"state": self.state.value})
