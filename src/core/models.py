"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class RepliedMessage:
    """The message an inbound message replies to."""

    id: int
    text: str


@dataclass(frozen=True)
class InboundMessage:
    """Minimal chat message consumed by the dispatcher."""

    text: str
    conversation_id: int
    sender_id: Optional[int]
    message_id: int
    reply_to: Optional[RepliedMessage] = None


@dataclass(frozen=True)
class Invocation:
    """A fully resolved external command, ready to execute."""

    executable: str
    arguments: Tuple[str, ...]
    working_directory: Optional[str]
    environment: Tuple[str, ...]
    stdin: Optional[bytes] = None

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]

    def environment_mapping(self) -> dict[str, str]:
        """Collapse the ordered KEY=VALUE list; later keys shadow earlier ones."""

        env: dict[str, str] = {}
        for entry in self.environment:
            key, _, value = entry.partition("=")
            env[key] = value
        return env


@dataclass(frozen=True)
class Success:
    stdout: bytes


@dataclass(frozen=True)
class NonZeroExit:
    code: int
    stderr: bytes


@dataclass(frozen=True)
class TimedOut:
    timeout: timedelta


ExecutionResult = Union[Success, NonZeroExit, TimedOut]


@dataclass(frozen=True)
class OutboundReply:
    """Reply handed to the transport."""

    conversation_id: int
    body: str
    reply_to_message_id: Optional[int]
    suppress_prior_keyboard: bool = True


class DispatchStatus(str, Enum):
    DROPPED = "dropped"
    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of running one message through the dispatch pipeline.

    `stage` names the pipeline step that failed and is only set for FAILED
    outcomes.
    """

    message: InboundMessage
    status: DispatchStatus
    rule_name: Optional[str] = None
    reply: Optional[OutboundReply] = None
    stage: Optional[str] = None
    error: Optional[BaseException] = None
