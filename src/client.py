"""Telegram client factory for telecmd.

We explicitly manage the client's lifecycle (start/disconnect) so it is
obvious when the session is created and when it ends. This avoids implicit
context-manager behavior for a long-running bot.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


@dataclass(frozen=True)
class Credentials:
    api_id: int
    api_hash: str
    bot_token: str
    session_name: str


def load_credentials() -> Credentials:
    """Read API_ID/API_HASH/TELEGRAM_BOT_TOKEN via python-dotenv.

    Keeps secrets out of config.json and the repo. The session name defaults
    to "telecmd" to create a local .session file.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    session_name = os.getenv("SESSION_NAME", "telecmd")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")
    if not bot_token:
        raise RuntimeError("Missing TELEGRAM_BOT_TOKEN in environment")
    try:
        parsed_api_id = int(api_id)
    except ValueError as exc:
        raise RuntimeError("API_ID must be numeric") from exc

    return Credentials(
        api_id=parsed_api_id,
        api_hash=api_hash,
        bot_token=bot_token,
        session_name=session_name,
    )


def build_client(credentials: Credentials) -> TelegramClient:
    """Create a Telethon client; call start(bot_token=...) to log in."""

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(credentials.session_name, credentials.api_id, credentials.api_hash)
