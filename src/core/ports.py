"""Ports (interfaces) used by the dispatcher.

Ports define the minimal contracts for the chat transport and the process
runner so that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import timedelta
from typing import AsyncIterator, Protocol

from core.models import ExecutionResult, InboundMessage, Invocation, OutboundReply


class InboundStream(Protocol):
    """Lazy, effectively infinite stream of inbound chat messages."""

    def __aiter__(self) -> AsyncIterator[InboundMessage]:
        ...


class ReplySender(Protocol):
    """Outbound delivery. Failures are raised as SendError."""

    async def send(self, reply: OutboundReply) -> None:
        ...


class CommandRunner(Protocol):
    """Executes an invocation under a deadline."""

    async def execute(self, invocation: Invocation, timeout: timedelta) -> ExecutionResult:
        ...
