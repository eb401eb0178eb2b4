"""Turn a matched rule and an inbound message into an Invocation."""

from __future__ import annotations

import os
from typing import List, Optional, Sequence

from core.errors import BuildError
from core.models import InboundMessage, Invocation
from core.rules_engine import Rule

# Keeps the message text from being parsed as extra flags.
ARGUMENT_SEPARATOR = "--"

CHAT_ID_VAR = "TELEGRAM_CHAT_ID"
FROM_USER_ID_VAR = "TELEGRAM_FROM_USER_ID"
REPLY_TO_MESSAGE_ID_VAR = "TELEGRAM_REPLY_TO_MESSAGE_ID"
REPLY_TO_MESSAGE_TEXT_VAR = "TELEGRAM_REPLY_TO_MESSAGE_TEXT"


def inherited_environment() -> List[str]:
    """Snapshot the dispatcher's own environment as KEY=VALUE entries."""

    return [f"{key}={value}" for key, value in os.environ.items()]


def message_environment(message: InboundMessage) -> List[str]:
    """Environment entries derived from the chat message."""

    envs = [f"{CHAT_ID_VAR}={message.conversation_id}"]
    if message.sender_id is not None:
        envs.append(f"{FROM_USER_ID_VAR}={message.sender_id}")
    if message.reply_to is not None:
        envs.append(f"{REPLY_TO_MESSAGE_ID_VAR}={message.reply_to.id}")
        envs.append(f"{REPLY_TO_MESSAGE_TEXT_VAR}={message.reply_to.text}")
    return envs


def build_invocation(
    rule: Rule,
    message: InboundMessage,
    base_environment: Optional[Sequence[str]] = None,
    cwd: Optional[str] = None,
) -> Invocation:
    """Build the process invocation for a rule match.

    The environment is layered by concatenation: inherited environment, then
    the rule's entries, then message-derived entries. Nothing is merged or
    mutated in place; when the process starts, later keys win.
    """

    if not rule.command:
        raise BuildError(f"rule {rule.name!r} has an empty command")

    arguments = list(rule.command[1:])
    stdin: Optional[bytes] = None
    if rule.use_stdin:
        stdin = message.text.encode("utf-8")
    else:
        arguments.extend([ARGUMENT_SEPARATOR, message.text])

    if base_environment is None:
        base_environment = inherited_environment()
    environment = (
        tuple(base_environment)
        + tuple(rule.environment)
        + tuple(message_environment(message))
    )

    return Invocation(
        executable=rule.command[0],
        arguments=tuple(arguments),
        working_directory=rule.working_dir or cwd or os.getcwd(),
        environment=environment,
        stdin=stdin,
    )
