from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import websockets
from websockets.protocol import State

from wabridge.core.errors import TransportError
from wabridge.defaults.config import WA_ORIGIN, WA_WS_URL

logger = logging.getLogger(__name__)


class WebSocketChannel:
    """Async WebSocket duplex channel to the WhatsApp Web edge.

    Lifecycle signals are reported through plain callbacks which must return
    quickly: ``on_open()``, ``on_message(data)``, ``on_close(reason)`` and
    ``on_error(exc)``. ``on_close`` fires once when the remote side or the
    network ends an open connection; an explicit :meth:`disconnect` does not
    fire it.
    """

    def __init__(
        self,
        url: str | None = None,
        origin: str | None = None,
        connect_timeout: float = 20.0,
    ) -> None:
        self.url = url or WA_WS_URL
        self.origin = origin or WA_ORIGIN
        self.connect_timeout = connect_timeout
        self._ws: Any | None = None
        self._recv_task: asyncio.Task | None = None
        self.on_open: Callable[[], None] | None = None
        self.on_message: Callable[[bytes], None] | None = None
        self.on_close: Callable[[BaseException | None], None] | None = None
        self.on_error: Callable[[BaseException], None] | None = None

    async def connect(self) -> None:
        """Opens the WebSocket and starts the receive loop."""
        try:
            self._ws = await websockets.connect(
                self.url,
                origin=self.origin,
                ping_interval=None,  # keepalive is the engine's job
                max_size=None,
                open_timeout=self.connect_timeout,
            )
        except Exception as e:
            raise TransportError(f"Failed to connect to {self.url}: {e}") from e

        logger.debug("websocket connected to %s", self.url)
        # signal open before the first recv so data never overtakes it
        if self.on_open:
            self.on_open()
        self._recv_task = asyncio.create_task(self._listen_loop())

    async def disconnect(self) -> None:
        """Cleanly disconnects."""
        if self._recv_task:
            self._recv_task.cancel()
            self._recv_task = None
        if self._ws:
            ws, self._ws = self._ws, None
            await ws.close()
            wait_closed = getattr(ws, "wait_closed", None)
            if callable(wait_closed):
                await wait_closed()

    async def send(self, data: bytes) -> None:
        """Sends one binary frame."""
        if not self.is_open:
            raise TransportError("WebSocket is disconnected")
        try:
            await self._ws.send(data)
        except websockets.exceptions.ConnectionClosed as e:
            raise TransportError(f"WebSocket closed while sending: {e}") from e

    @property
    def is_open(self) -> bool:
        ws = self._ws
        if ws is None:
            return False

        # websockets<=11 style API
        if hasattr(ws, "closed"):
            return not bool(getattr(ws, "closed"))

        # websockets>=12 style API
        state = getattr(ws, "state", None)
        if state is None:
            return False
        return state == State.OPEN or state == 1

    async def _listen_loop(self) -> None:
        """Receives frames one at a time and hands each to ``on_message`` in order."""
        try:
            while True:
                message = await self._ws.recv()
                if isinstance(message, str):
                    message = message.encode()
                if self.on_message:
                    self.on_message(message)
        except websockets.exceptions.ConnectionClosed as e:
            self._ws = None
            if self.on_close:
                self.on_close(e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("websocket receive loop failed: %s", e, exc_info=True)
            self._ws = None
            if self.on_error:
                self.on_error(e)
            if self.on_close:
                self.on_close(e)
