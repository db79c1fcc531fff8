"""Channel-to-engine direction: inbound frames and open/close transitions."""

from __future__ import annotations

import logging
from typing import Callable

from wabridge.core.errors import EngineError
from wabridge.engine.base import Engine

logger = logging.getLogger(__name__)

ErrorReporter = Callable[[BaseException], None]


class InboundRelay:
    """Hands each received channel message to ``engine.receive_frame`` untouched."""

    def __init__(self, engine: Engine, report_error: ErrorReporter) -> None:
        self._engine = engine
        self._report_error = report_error
        self.relayed = 0

    def relay(self, data: bytes | bytearray | memoryview | str) -> None:
        if isinstance(data, str):
            data = data.encode()
        frame = bytes(data)
        self.relayed += 1
        try:
            self._engine.receive_frame(frame)
        except Exception as exc:
            logger.error("engine rejected inbound frame of %d bytes: %s", len(frame), exc, exc_info=True)
            self._report_error(EngineError(f"engine failed to accept inbound frame: {exc}"))


class LifecycleNotifier:
    """Forwards channel transitions to the engine, once per transition.

    Calls strictly alternate ``connected`` / ``disconnected``, starting with
    ``connected``; a repeated signal for the same side is ignored.
    """

    def __init__(self, engine: Engine, report_error: ErrorReporter) -> None:
        self._engine = engine
        self._report_error = report_error
        self._connected = False

    @property
    def connected_notified(self) -> bool:
        return self._connected

    def connected(self) -> bool:
        if self._connected:
            logger.debug("duplicate connected notification suppressed")
            return False
        self._connected = True
        self._call("notify_connected", self._engine.notify_connected)
        return True

    def disconnected(self) -> bool:
        if not self._connected:
            logger.debug("disconnected notification without prior connected suppressed")
            return False
        self._connected = False
        self._call("notify_disconnected", self._engine.notify_disconnected)
        return True

    def _call(self, name: str, hook: Callable[[], None]) -> None:
        try:
            hook()
        except Exception as exc:
            logger.error("engine %s hook failed: %s", name, exc, exc_info=True)
            self._report_error(EngineError(f"engine {name} failed: {exc}"))
