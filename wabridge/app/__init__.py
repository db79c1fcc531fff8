"""High-level bot exports."""

from .bot import Bot
from .context import MessageContext
from .handlers import install_ping_responder, print_pairing_code

__all__ = ["Bot", "MessageContext", "install_ping_responder", "print_pairing_code"]
