# ruff: noqa: E402
"""Ping/pong bot over the WhatsApp Web WebSocket.

Usage:
    python examples/ping_bot.py

Optional env:
    WABRIDGE_DB=whatsapp.db
    WABRIDGE_LOG_LEVEL=INFO
    WABRIDGE_WS_URL=wss://web.whatsapp.com/ws/chat
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from wabridge.app import Bot, install_ping_responder, print_pairing_code
from wabridge.core.events import EventTag, LoggedOut, SerializationError
from wabridge.defaults.config import WA_WS_URL
from wabridge.infra.logger import get_logger

get_logger("wabridge", level=getattr(logging, os.getenv("WABRIDGE_LOG_LEVEL", "INFO").upper(), logging.INFO))


async def main() -> int:
    db_path = os.getenv("WABRIDGE_DB", str(Path(__file__).resolve().parent / "whatsapp.db"))
    print("--- wabridge ping bot ---")
    print(f"Using database at: {db_path}")

    try:
        bot = Bot(db_path, ws_url=os.getenv("WABRIDGE_WS_URL", WA_WS_URL))
    except Exception as exc:
        print(f"An error occurred: {exc}")
        return 1

    bot.on(EventTag.PAIRING_QR_CODE, print_pairing_code)
    install_ping_responder(bot)

    @bot.on_ready
    def _ready(_: Bot) -> None:
        print("[EVENT] Connected to WhatsApp")

    @bot.on(EventTag.LOGGED_OUT)
    def _logged_out(event: LoggedOut) -> None:
        print(f"[EVENT] Logged out. Reason: {event.reason}")

    @bot.on(EventTag.SERIALIZATION_ERROR)
    def _serialization_error(event: SerializationError) -> None:
        print(f"[ENGINE ERROR] Failed to serialize an event: {event.error}")

    @bot.on("error")
    def _error(exc: BaseException) -> None:
        print(f"[ERROR] {exc}")

    print("Starting the bot's main loop...")
    try:
        await bot.start()
    except Exception as exc:
        print(f"An error occurred: {exc}")
        return 1
    print("Bot has stopped. The script will now exit.")
    return 0


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        sys.exit(asyncio.run(main()))
