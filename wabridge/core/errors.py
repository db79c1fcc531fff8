from __future__ import annotations

from typing import Any, Optional


class WabridgeError(Exception):
    """Base exception for wabridge."""
    pass


class ConnectionError(WabridgeError):
    """Raised when there is a connection issue."""
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(ConnectionError):
    """Channel open/send/receive failure. Never fatal for the bridge."""


class FrameQueueFull(WabridgeError):
    """Raised by a bounded frame queue that cannot accept another frame."""
    def __init__(self, limit: int):
        super().__init__(f"frame queue is full ({limit} frames)")
        self.limit = limit


class EngineError(WabridgeError):
    """Raised when the protocol engine cannot be constructed, started or used."""


class EngineReportedError(EngineError):
    """An error indicator passed by the engine through one of its callbacks."""
    def __init__(self, error: Any, source: str = "event"):
        super().__init__(f"engine reported an error on the {source} callback: {error}")
        self.error = error
        self.source = source


class InvalidJidError(WabridgeError, ValueError):
    """Raised for identifiers that are not of the form user@server."""
    def __init__(self, jid: Any, reason: str):
        super().__init__(f"Invalid JID {jid!r}: {reason}")
        self.jid = jid


class EmptyEventError(WabridgeError):
    """The engine delivered an event notification with no payload."""
    def __init__(self) -> None:
        super().__init__("received an empty event payload from the engine")


class EventDecodeError(WabridgeError):
    """An event payload could not be decoded; ``raw`` holds it for diagnosis."""
    def __init__(self, message: str, raw: Any):
        super().__init__(message)
        self.raw = raw


class HandlerError(WabridgeError):
    """A subscriber raised while handling an event."""
    def __init__(self, tag: str, handler: Any, cause: BaseException):
        name = getattr(handler, "__qualname__", repr(handler))
        super().__init__(f"handler {name} failed for {tag!r}: {cause}")
        self.tag = tag
        self.handler = handler
        self.__cause__ = cause
