"""High-level wabridge bot."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from wabridge.app.context import MessageContext
from wabridge.bridge.bridge import Bridge
from wabridge.bridge.connection import Channel, ConnectionState
from wabridge.bridge.dispatcher import HandlerFn
from wabridge.core.errors import EngineError
from wabridge.core.events import Connected, EventTag, Message
from wabridge.engine.base import EngineFactory
from wabridge.engine.loopback import LoopbackEngine

ReadyCallback = Callable[["Bot"], Awaitable[None] | None]
MessageHandler = Callable[[MessageContext], Awaitable[None] | None]


class Bot:
    """Decorator-based wrapper around :class:`Bridge` and its WebSocket channel."""

    def __init__(
        self,
        db_path: str = "wabridge.db",
        engine_factory: EngineFactory = LoopbackEngine,
        channel: Channel | None = None,
        **config_overrides: Any,
    ) -> None:
        self.bridge = Bridge(engine_factory, db_path, channel=channel, **config_overrides)

    @property
    def engine(self) -> Any:
        return self.bridge.engine

    @property
    def state(self) -> ConnectionState:
        return self.bridge.state

    def on(self, tag: EventTag | str, handler: HandlerFn | None = None):
        return self.bridge.on(tag, handler)

    def on_ready(self, func: ReadyCallback) -> ReadyCallback:
        @self.bridge.on(EventTag.CONNECTED)
        async def _ready(_: Connected) -> None:
            result = func(self)
            if inspect.isawaitable(result):
                await result

        return func

    def message(self, func: MessageHandler) -> MessageHandler:
        """Registers ``func`` for ``Message`` events, called with a :class:`MessageContext`."""

        @self.bridge.on(EventTag.MESSAGE)
        async def _dispatch(message: Message) -> None:
            result = func(MessageContext(message=message, bot=self))
            if inspect.isawaitable(result):
                await result

        return func

    async def send_message(self, jid: str, text: str) -> str:
        return await self.bridge.send_message(jid, text)

    async def start(self) -> None:
        """Connects and runs until the engine's session ends."""
        try:
            await self.bridge.run()
        finally:
            close = getattr(self.bridge.engine, "close", None)
            if callable(close):
                close()

    def stop(self) -> None:
        stop = getattr(self.bridge.engine, "stop", None)
        if not callable(stop):
            raise EngineError(f"{type(self.bridge.engine).__name__} cannot be stopped from the host")
        stop()

    def run(self) -> None:
        try:
            asyncio.run(self.start())
        except KeyboardInterrupt:
            pass
