"""Transport bridge and event dispatch for external WhatsApp protocol engines."""

__version__ = "0.1.0"

__all__ = [
    "Bot",
    "MessageContext",
    "Bridge",
    "ConnectionState",
    "EventTag",
    "LoopbackEngine",
    "WabridgeError",
    "Jid",
    "parse_jid",
]


def __getattr__(name: str) -> object:
    """Lazy exports to avoid importing the network stack at package import time."""
    if name in {"Bot", "MessageContext"}:
        from .app import Bot, MessageContext

        return {"Bot": Bot, "MessageContext": MessageContext}[name]

    if name in {"Bridge", "ConnectionState"}:
        from .bridge import Bridge, ConnectionState

        return {"Bridge": Bridge, "ConnectionState": ConnectionState}[name]

    if name == "LoopbackEngine":
        from .engine.loopback import LoopbackEngine

        return LoopbackEngine

    if name in {"EventTag", "WabridgeError", "Jid", "parse_jid"}:
        from .core import EventTag, Jid, WabridgeError, parse_jid

        return {
            "EventTag": EventTag,
            "WabridgeError": WabridgeError,
            "Jid": Jid,
            "parse_jid": parse_jid,
        }[name]

    raise AttributeError(f"module 'wabridge' has no attribute {name!r}")
