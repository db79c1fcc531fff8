"""Typed taxonomy of the notifications emitted by the protocol engine.

The engine serializes each notification as a JSON object of the form
``{"type": <tag>, "data": {...}}``. :func:`decode_event` turns that text into
one of the frozen variants below. Tags this module does not model decode to
:class:`Other` so newer engines never break dispatch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Mapping, Optional, Union

from wabridge.core.errors import EmptyEventError, EventDecodeError
from wabridge.core.jid import Jid

ERROR_TAG = "error"


class EventTag(str, Enum):
    PAIRING_QR_CODE = "PairingQrCode"
    MESSAGE = "Message"
    CONNECTED = "Connected"
    LOGGED_OUT = "LoggedOut"
    SERIALIZATION_ERROR = "SerializationError"
    OTHER = "Other"


@dataclass(frozen=True)
class MessageSource:
    chat: Jid
    sender: Jid
    is_from_me: bool = False
    is_group: bool = False


@dataclass(frozen=True)
class MessageInfo:
    source: MessageSource
    id: Optional[str] = None
    push_name: Optional[str] = None
    timestamp: Any = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class PairingQrCode:
    tag: ClassVar[EventTag] = EventTag.PAIRING_QR_CODE
    code: str
    timeout: int


@dataclass(frozen=True)
class Message:
    tag: ClassVar[EventTag] = EventTag.MESSAGE
    info: MessageInfo
    text_content: Optional[str] = None

    @property
    def chat(self) -> Jid:
        return self.info.source.chat

    @property
    def sender(self) -> Jid:
        return self.info.source.sender


@dataclass(frozen=True)
class Connected:
    tag: ClassVar[EventTag] = EventTag.CONNECTED


@dataclass(frozen=True)
class LoggedOut:
    tag: ClassVar[EventTag] = EventTag.LOGGED_OUT
    reason: str


@dataclass(frozen=True)
class SerializationError:
    tag: ClassVar[EventTag] = EventTag.SERIALIZATION_ERROR
    error: str


@dataclass(frozen=True)
class Other:
    tag: ClassVar[EventTag] = EventTag.OTHER
    raw: Any = None


Event = Union[PairingQrCode, Message, Connected, LoggedOut, SerializationError, Other]


def _data(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    data = obj.get("data")
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError("'data' must be an object")
    return data


def _decode_pairing(obj: Mapping[str, Any]) -> PairingQrCode:
    data = _data(obj)
    code = data["code"]
    timeout = data["timeout"]
    if not isinstance(code, str):
        raise TypeError("'code' must be a string")
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise TypeError("'timeout' must be a number of seconds")
    return PairingQrCode(code=code, timeout=int(timeout))


def _decode_message_info(info: Any) -> MessageInfo:
    if not isinstance(info, Mapping):
        raise TypeError("'info' must be an object")
    source = info["source"]
    if not isinstance(source, Mapping):
        raise TypeError("'info.source' must be an object")
    chat = Jid.from_mapping(source["chat"])
    sender = Jid.from_mapping(source["sender"])
    push_name = info.get("push_name", info.get("pushName"))
    return MessageInfo(
        source=MessageSource(
            chat=chat,
            sender=sender,
            is_from_me=bool(source.get("is_from_me", source.get("isFromMe", False))),
            is_group=bool(source.get("is_group", source.get("isGroup", False))),
        ),
        id=info.get("id") if isinstance(info.get("id"), str) else None,
        push_name=push_name if isinstance(push_name, str) else None,
        timestamp=info.get("timestamp"),
        raw=info,
    )


def _decode_message(obj: Mapping[str, Any]) -> Message:
    data = _data(obj)
    text = data.get("textContent")
    if text is not None and not isinstance(text, str):
        raise TypeError("'textContent' must be a string or null")
    return Message(info=_decode_message_info(data["info"]), text_content=text)


def _decode_logged_out(obj: Mapping[str, Any]) -> LoggedOut:
    return LoggedOut(reason=str(_data(obj).get("reason", "")))


def _decode_serialization_error(obj: Mapping[str, Any]) -> SerializationError:
    error = obj.get("error")
    if error is None:
        error = _data(obj).get("error", "")
    return SerializationError(error=str(error))


_DECODERS: dict[str, Callable[[Mapping[str, Any]], Event]] = {
    EventTag.PAIRING_QR_CODE.value: _decode_pairing,
    EventTag.MESSAGE.value: _decode_message,
    EventTag.CONNECTED.value: lambda obj: Connected(),
    EventTag.LOGGED_OUT.value: _decode_logged_out,
    EventTag.SERIALIZATION_ERROR.value: _decode_serialization_error,
}


def decode_event(payload: str | bytes | bytearray | None) -> Event:
    """Decodes one engine notification payload.

    Raises :class:`EmptyEventError` for a missing payload and
    :class:`EventDecodeError` (with the raw payload attached) for anything
    that is not a well-formed event object.
    """
    if payload is None:
        raise EmptyEventError()
    if not isinstance(payload, (str, bytes, bytearray)):
        raise EventDecodeError(f"event payload must be JSON text, got {type(payload).__name__}", raw=payload)
    if len(payload) == 0:
        raise EmptyEventError()
    try:
        obj = json.loads(payload)
    except (ValueError, RecursionError) as exc:
        raise EventDecodeError(f"event payload is not valid JSON: {exc}", raw=payload) from exc
    if not isinstance(obj, dict):
        raise EventDecodeError("event payload must be a JSON object", raw=payload)

    tag = obj.get("type")
    if not isinstance(tag, str) or not tag:
        raise EventDecodeError("event payload has no 'type' tag", raw=payload)

    decoder = _DECODERS.get(tag)
    if decoder is None:
        return Other(raw=obj)
    try:
        return decoder(obj)
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise EventDecodeError(f"malformed {tag} event: {exc!r}", raw=payload) from exc
