"""Default constants and configuration values for wabridge."""

from .config import DEFAULT_BRIDGE_CONFIG, WA_ORIGIN, WA_WS_URL

__all__ = ["DEFAULT_BRIDGE_CONFIG", "WA_ORIGIN", "WA_WS_URL"]
