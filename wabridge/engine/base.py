"""Contract between the bridge and an external protocol engine.

The engine owns sessions, cryptography and wire encoding. The bridge only
moves opaque frames and decoded notifications across this boundary.

Engines call the two callbacks from their own execution context (usually a
worker thread running its own event loop). Both callbacks are thread-safe
and return immediately.
"""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from wabridge.infra.http import HttpRequest, HttpResponse

EventCallback = Callable[[Optional[BaseException], Optional[str]], None]
"""``on_event(err, payload)``: payload is the JSON text of one notification."""

FrameCallback = Callable[[Optional[BaseException], Optional[bytes]], None]
"""``on_frame(err, frame)``: one outbound frame for the channel."""

HttpCallback = Callable[[HttpRequest], "Future[HttpResponse]"]
"""Asks the host to run an HTTP request; the future resolves on any thread."""


@runtime_checkable
class Engine(Protocol):
    async def start(self) -> None:
        """Runs the session; returns when it ends, raises on fatal startup failure."""
        ...

    async def send_message(self, jid: str, text: str) -> str:
        """Sends a text message and returns its message id."""
        ...

    def receive_frame(self, frame: bytes) -> None: ...

    def notify_connected(self) -> None: ...

    def notify_disconnected(self) -> None: ...


class EngineFactory(Protocol):
    def __call__(
        self,
        db_path: str,
        on_event: EventCallback,
        on_frame: FrameCallback,
        *,
        execute_http: HttpCallback | None = None,
    ) -> Engine:
        """Constructs an engine bound to ``db_path``; raises if the path is unusable."""
        ...


def describe_engine(engine: Any) -> str:
    return f"{type(engine).__module__}.{type(engine).__qualname__}"
