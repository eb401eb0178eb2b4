"""Inbound update stream backed by a Telethon event handler."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from telethon import events

from adapters.telegram_mapper import build_inbound_message
from core.models import InboundMessage

LOGGER = logging.getLogger(__name__)


class TelegramUpdateStream:
    """Expose incoming Telegram messages as an async iterator.

    A single NewMessage handler maps events into a queue; the dispatcher pulls
    from it at its own pace.
    """

    def __init__(self, client) -> None:
        self._client = client
        self._queue: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._client.add_event_handler(self._on_new_message, events.NewMessage(incoming=True))

    async def _on_new_message(self, event) -> None:
        try:
            inbound = await build_inbound_message(event.message)
        except Exception:
            LOGGER.exception("Cannot map incoming message")
            return
        self._queue.put_nowait(inbound)

    def close(self) -> None:
        self._client.remove_event_handler(self._on_new_message)

    async def __aiter__(self) -> AsyncIterator[InboundMessage]:
        while True:
            yield await self._queue.get()
