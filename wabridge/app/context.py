"""High-level message context object."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from wabridge.core.events import Message
from wabridge.core.jid import is_jid_group

if TYPE_CHECKING:
    from wabridge.app.bot import Bot

MEDIA_PLACEHOLDER = "<Media>"


@dataclass
class MessageContext:
    message: Message
    bot: "Bot"

    @property
    def text(self) -> str | None:
        return self.message.text_content

    @property
    def display_text(self) -> str:
        return self.message.text_content if self.message.text_content is not None else MEDIA_PLACEHOLDER

    @property
    def chat_jid(self) -> str:
        return str(self.message.chat)

    @property
    def sender_jid(self) -> str:
        return str(self.message.sender)

    @property
    def is_group(self) -> bool:
        return self.message.info.source.is_group or is_jid_group(self.chat_jid)

    async def reply(self, text: str) -> str:
        return await self.bot.send_message(self.chat_jid, text)
