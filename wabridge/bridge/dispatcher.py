"""Routing of decoded engine events to subscribers."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from wabridge.core.errors import (
    EmptyEventError,
    EngineReportedError,
    EventDecodeError,
    HandlerError,
)
from wabridge.core.events import ERROR_TAG, EventTag, decode_event

logger = logging.getLogger(__name__)

HandlerFn = Callable[[Any], Awaitable[None] | None]

_KNOWN_TAGS = {tag.value for tag in EventTag} | {ERROR_TAG}


def _tag_key(tag: EventTag | str) -> str:
    key = tag.value if isinstance(tag, EventTag) else tag
    if key not in _KNOWN_TAGS:
        raise ValueError(f"unknown event tag {tag!r}; expected one of {sorted(_KNOWN_TAGS)}")
    return key


class EventDispatcher:
    """Tag-indexed handler registry.

    Handlers run in registration order, one at a time; coroutine results are
    awaited before the next handler starts. A handler that raises is logged
    and reported on the ``"error"`` tag; the rest still run.

    Register handlers before the bridge starts; the registry is not guarded
    against changes during dispatch.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[HandlerFn]] = {}

    def on(self, tag: EventTag | str, handler: HandlerFn | None = None):
        key = _tag_key(tag)

        def decorator(func: HandlerFn) -> HandlerFn:
            self._handlers.setdefault(key, []).append(func)
            return func

        if handler is not None:
            return decorator(handler)
        return decorator

    def handlers(self, tag: EventTag | str) -> list[HandlerFn]:
        return list(self._handlers.get(_tag_key(tag), ()))

    async def notify(self, err: Optional[BaseException], payload: str | bytes | bytearray | None) -> None:
        """Entry point for one engine notification, already on the dispatch task."""
        if err is not None:
            await self.report(EngineReportedError(err, source="event"))
            return
        try:
            event = decode_event(payload)
        except (EmptyEventError, EventDecodeError) as exc:
            logger.debug("undecodable event payload: %r", payload)
            await self.report(exc)
            return
        await self.emit(event.tag, event)

    async def emit(self, tag: EventTag | str, payload: Any) -> None:
        key = _tag_key(tag)
        for handler in list(self._handlers.get(key, ())):
            try:
                await self._invoke(handler, payload)
            except Exception as exc:
                logger.exception("handler %r failed for %s", handler, key, extra={"tag": key})
                if key != ERROR_TAG:
                    await self.report(HandlerError(key, handler, exc))

    async def report(self, error: BaseException) -> None:
        """Delivers ``error`` to the ``"error"`` subscribers, or logs it when there are none."""
        if not self._handlers.get(ERROR_TAG):
            logger.error("%s: %s", type(error).__name__, error)
            return
        await self.emit(ERROR_TAG, error)

    @staticmethod
    async def _invoke(handler: HandlerFn, payload: Any) -> None:
        result = handler(payload)
        if inspect.isawaitable(result):
            await result
