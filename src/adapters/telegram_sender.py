"""Telegram reply adapter.

Sends command output back into the originating chat as a reply.
"""

from __future__ import annotations

from telethon import Button, errors

from core.errors import SendError
from core.models import OutboundReply


class TelegramReplySender:
    """ReplySender adapter that sends messages with a Telethon client."""

    def __init__(self, client) -> None:
        self._client = client

    async def send(self, reply: OutboundReply) -> None:
        """Send the reply as plain text; no Markdown parsing of command output."""

        buttons = Button.clear() if reply.suppress_prior_keyboard else None
        try:
            await self._client.send_message(
                reply.conversation_id,
                reply.body,
                reply_to=reply.reply_to_message_id,
                buttons=buttons,
                parse_mode=None,
            )
        except (errors.RPCError, ConnectionError, ValueError) as exc:
            raise SendError(f"cannot send reply to {reply.conversation_id}: {exc}") from exc
