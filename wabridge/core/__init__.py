from .jid import (
    Jid,
    jid_encode,
    parse_jid,
    is_jid_group,
    S_WHATSAPP_NET,
    S_WHATSAPP_NET_GROUP,
)
from .errors import (
    WabridgeError,
    ConnectionError,
    TransportError,
    EngineError,
    EngineReportedError,
    InvalidJidError,
    EventDecodeError,
    EmptyEventError,
    HandlerError,
    FrameQueueFull,
)
from .events import (
    ERROR_TAG,
    Event,
    EventTag,
    PairingQrCode,
    Message,
    MessageInfo,
    MessageSource,
    Connected,
    LoggedOut,
    SerializationError,
    Other,
    decode_event,
)

__all__ = [
    "Jid",
    "jid_encode",
    "parse_jid",
    "is_jid_group",
    "S_WHATSAPP_NET",
    "S_WHATSAPP_NET_GROUP",
    "WabridgeError",
    "ConnectionError",
    "TransportError",
    "EngineError",
    "EngineReportedError",
    "InvalidJidError",
    "EventDecodeError",
    "EmptyEventError",
    "HandlerError",
    "FrameQueueFull",
    "ERROR_TAG",
    "Event",
    "EventTag",
    "PairingQrCode",
    "Message",
    "MessageInfo",
    "MessageSource",
    "Connected",
    "LoggedOut",
    "SerializationError",
    "Other",
    "decode_event",
]
