from __future__ import annotations

import asyncio

import pytest
from telethon.tl.types import ReplyKeyboardHide

from adapters.telegram_sender import TelegramReplySender
from adapters.telegram_updates import TelegramUpdateStream
from core.errors import SendError
from core.models import OutboundReply


class FakeClient:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[tuple, dict]] = []
        self.handlers: list = []
        self._fail = fail

    async def send_message(self, *args, **kwargs) -> None:
        if self._fail:
            raise ConnectionError("offline")
        self.sent.append((args, kwargs))

    def add_event_handler(self, callback, event) -> None:
        self.handlers.append(callback)

    def remove_event_handler(self, callback) -> None:
        self.handlers.remove(callback)


class DummyMessage:
    def __init__(self, message_id: int, text: str) -> None:
        self.chat_id = 5
        self.id = message_id
        self.raw_text = text
        self.sender_id = 6
        self.reply_to_msg_id = None


class DummyEvent:
    def __init__(self, message: DummyMessage) -> None:
        self.message = message


def test_reply_is_sent_as_plain_text_reply() -> None:
    client = FakeClient()
    sender = TelegramReplySender(client)

    asyncio.run(sender.send(OutboundReply(conversation_id=5, body="*not bold*", reply_to_message_id=9)))

    [(args, kwargs)] = client.sent
    assert args == (5, "*not bold*")
    assert kwargs["reply_to"] == 9
    assert kwargs["parse_mode"] is None
    assert isinstance(kwargs["buttons"], ReplyKeyboardHide)


def test_keyboard_is_kept_when_not_suppressed() -> None:
    client = FakeClient()
    sender = TelegramReplySender(client)

    asyncio.run(
        sender.send(
            OutboundReply(conversation_id=5, body="x", reply_to_message_id=None, suppress_prior_keyboard=False)
        )
    )

    assert client.sent[0][1]["buttons"] is None


def test_delivery_failure_is_a_send_error() -> None:
    sender = TelegramReplySender(FakeClient(fail=True))

    with pytest.raises(SendError):
        asyncio.run(sender.send(OutboundReply(conversation_id=5, body="x", reply_to_message_id=1)))


def test_update_stream_yields_mapped_messages_in_order() -> None:
    client = FakeClient()

    async def scenario() -> list:
        stream = TelegramUpdateStream(client)
        [handler] = client.handlers
        await handler(DummyEvent(DummyMessage(1, "/first")))
        await handler(DummyEvent(DummyMessage(2, "/second")))

        received = []
        async for message in stream:
            received.append(message)
            if len(received) == 2:
                break
        stream.close()
        return received

    received = asyncio.run(scenario())

    assert [message.text for message in received] == ["/first", "/second"]
    assert received[0].conversation_id == 5
    assert client.handlers == []
