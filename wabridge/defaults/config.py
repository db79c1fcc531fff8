"""Default channel and bridge configuration values."""

WA_WS_URL = "wss://web.whatsapp.com/ws/chat"
WA_ORIGIN = "https://web.whatsapp.com"

DEFAULT_BRIDGE_CONFIG = {
    "ws_url": WA_WS_URL,
    "origin": WA_ORIGIN,
    "connect_timeout": 20.0,
    # None keeps the queue unbounded; an int makes overflow a reported FrameQueueFull
    "max_queued_frames": None,
    "reconnect": False,
    "max_reconnect_attempts": 5,
    "reconnect_base_delay": 1.0,
    "reconnect_max_delay": 30.0,
    "http_timeout": 30.0,
}
