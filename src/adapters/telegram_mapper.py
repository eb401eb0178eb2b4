"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the dispatch pipeline.
"""

from __future__ import annotations

from typing import Optional

from telethon.tl.custom import Message

from core.models import InboundMessage, RepliedMessage


async def _replied_message(message: Message) -> Optional[RepliedMessage]:
    if not getattr(message, "reply_to_msg_id", None):
        return None
    replied = await message.get_reply_message()
    # The original may have been deleted; only the reference survives then.
    if replied is None:
        return None
    return RepliedMessage(id=replied.id, text=replied.raw_text or "")


async def build_inbound_message(message: Message) -> InboundMessage:
    """Build a core InboundMessage from a Telethon Message."""

    return InboundMessage(
        text=message.raw_text or "",
        conversation_id=message.chat_id,
        sender_id=getattr(message, "sender_id", None),
        message_id=message.id,
        reply_to=await _replied_message(message),
    )
