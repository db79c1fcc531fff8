"""Ready-made event handlers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wabridge.app.context import MessageContext
from wabridge.core.events import EventTag, Message, PairingQrCode

if TYPE_CHECKING:
    from wabridge.app.bot import Bot

logger = logging.getLogger(__name__)

PING = "ping"
PONG = "pong!"


def is_ping(text: str | None) -> bool:
    return text is not None and text.strip().lower() == PING


def install_ping_responder(bot: "Bot") -> None:
    """Replies ``pong!`` in the originating chat to every ``ping`` message."""

    @bot.on(EventTag.MESSAGE)
    async def _ping(message: Message) -> None:
        ctx = MessageContext(message=message, bot=bot)
        logger.info("[MSG] From: %s | In: %s | Text: %r", ctx.sender_jid, ctx.chat_jid, ctx.display_text)
        if not is_ping(ctx.text):
            return
        logger.info("received %r, sending %r back to %s", PING, PONG, ctx.chat_jid)
        try:
            msg_id = await ctx.reply(PONG)
        except Exception as exc:
            logger.error("failed to send pong message: %s", exc)
            return
        logger.info("pong sent (message id %s)", msg_id)


def print_pairing_code(event: PairingQrCode) -> None:
    """Prints the pairing code, as an ASCII QR when ``qrcode`` is installed."""
    print("\n--- SCAN QR CODE ---")
    print(event.code)
    try:
        import qrcode
    except ImportError:
        print("(Install 'qrcode' package to see a graphical QR in terminal)")
    else:
        qr = qrcode.QRCode(border=1)
        qr.add_data(event.code)
        qr.make(fit=True)
        qr.print_ascii(invert=True)
    print(f"(expires in {event.timeout}s)")
    print("--------------------\n")
