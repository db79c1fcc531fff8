from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from wabridge.core.errors import InvalidJidError

S_WHATSAPP_NET = "s.whatsapp.net"
S_WHATSAPP_NET_GROUP = "g.us"


@dataclass(frozen=True)
class Jid:
    user: str
    server: str
    device: Optional[int] = None

    def __str__(self) -> str:
        return jid_encode(self.user, self.server, self.device)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Jid":
        """Builds a Jid from the ``{"user", "server", "device"?}`` object the engine emits."""
        user = data["user"]
        server = data["server"]
        if not isinstance(user, str) or not isinstance(server, str):
            raise TypeError("jid user and server must be strings")
        device = data.get("device")
        # engines report the primary device as 0; keep the canonical user@server form
        if not isinstance(device, int) or isinstance(device, bool) or device == 0:
            device = None
        return cls(user=user, server=server, device=device)


def jid_encode(user: str, server: str, device: Optional[int] = None) -> str:
    """Encodes a JID from its parts."""
    base = f"{user}@{server}" if user else server
    if device is not None:
        base = f"{user}:{device}@{server}"
    return base


def parse_jid(jid_str: Any) -> Jid:
    """Parses an outbound address, rejecting anything that is not a full JID.

    Accepts ``user@server`` and the device-qualified ``user:device@server``.
    """
    if not isinstance(jid_str, str) or not jid_str.strip():
        raise InvalidJidError(jid_str, "must be a non-empty string")
    text = jid_str.strip()
    if "@" not in text:
        raise InvalidJidError(jid_str, "missing @server part")
    local, server = text.split("@", 1)
    if not server or "@" in server or any(ch.isspace() for ch in server):
        raise InvalidJidError(jid_str, "malformed server part")
    user, sep, device = local.partition(":")
    if not user or any(ch.isspace() for ch in user):
        raise InvalidJidError(jid_str, "missing user part")
    if sep and not device.isdigit():
        raise InvalidJidError(jid_str, "device must be numeric")
    return Jid(user=user, server=server, device=int(device) if sep else None)


def is_jid_group(jid_str: str) -> bool:
    """Checks if a JID is a group."""
    return jid_str.endswith(f"@{S_WHATSAPP_NET_GROUP}")
