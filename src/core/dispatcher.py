"""Core message dispatch pipeline.

This module is integration-agnostic. It only relies on ports for the chat
transport and process execution, enabling other frontends or adapters without
changes here.

Each message runs through a strict order:
1) Allowed-conversation filter (optional)
2) Rule matching, first match wins
3) Invocation building
4) Command execution under the configured timeout
5) Output interpretation
6) Reply delivery
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, Optional

from core.command_builder import build_invocation
from core.config import DispatchConfig
from core.errors import BuildError, LaunchError, SendError, UnknownOutputFormat
from core.models import DispatchOutcome, DispatchStatus, InboundMessage, OutboundReply
from core.output import interpret
from core.ports import CommandRunner, InboundStream, ReplySender
from core.rules_engine import Rule, RuleSet
from core.runner import ProcessRunner

LOGGER = logging.getLogger(__name__)

OutcomeCallback = Callable[[DispatchOutcome], None]


class Dispatcher:
    """Binds inbound messages to rule execution and reply delivery."""

    def __init__(
        self,
        rules: Iterable[Rule],
        config: DispatchConfig,
        sender: ReplySender,
        runner: Optional[CommandRunner] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> None:
        self._rules = rules if isinstance(rules, RuleSet) else RuleSet(rules)
        self._config = config
        self._sender = sender
        self._runner = runner or ProcessRunner()
        self._on_outcome = on_outcome
        # The pool's only backpressure: tasks queue here without bound.
        self._slots = asyncio.Semaphore(config.pool_capacity)

    async def run(self, stream: InboundStream) -> None:
        """Consume the stream, dispatching every message as its own task.

        When the stream is exhausted we wait for in-flight tasks. When this
        coroutine is cancelled (shutdown) every queued and running task is
        cancelled too, which kills their processes.
        """

        pending: set[asyncio.Task] = set()
        try:
            async for message in stream:
                task = asyncio.create_task(self._dispatch(message))
                pending.add(task)
                task.add_done_callback(pending.discard)
        except asyncio.CancelledError:
            LOGGER.info("Shutting down, cancelling %s in-flight task(s)", len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

        if pending:
            await asyncio.gather(*pending)

    async def _dispatch(self, message: InboundMessage) -> DispatchOutcome:
        async with self._slots:
            outcome = await self.handle(message)
        if self._on_outcome is not None:
            try:
                self._on_outcome(outcome)
            except Exception:
                LOGGER.exception("Outcome callback failed")
        return outcome

    async def handle(self, message: InboundMessage) -> DispatchOutcome:
        """Process one message through the pipeline.

        Never raises except for cancellation: every failure becomes a FAILED
        outcome so one bad message cannot stop the receive loop.
        """

        try:
            return await self._handle(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            LOGGER.exception("Error while dispatching message %s", message.message_id)
            return DispatchOutcome(message, DispatchStatus.FAILED, stage="unexpected", error=exc)

    async def _handle(self, message: InboundMessage) -> DispatchOutcome:
        allowed = self._config.allowed_conversations
        if allowed and message.conversation_id not in allowed:
            LOGGER.debug("Ignoring message from conversation %s", message.conversation_id)
            return DispatchOutcome(message, DispatchStatus.DROPPED)

        LOGGER.info(
            "Got message %s from %s in %s",
            message.message_id,
            message.sender_id,
            message.conversation_id,
        )

        rule = self._rules.match(message.text)
        if rule is None:
            LOGGER.debug("No matching rule for message %s", message.message_id)
            return DispatchOutcome(message, DispatchStatus.DROPPED)
        LOGGER.debug("Message %s matched rule %r", message.message_id, rule.name)

        def failed(stage: str, exc: Exception) -> DispatchOutcome:
            return DispatchOutcome(
                message,
                DispatchStatus.FAILED,
                rule_name=rule.name,
                stage=stage,
                error=exc,
            )

        try:
            invocation = build_invocation(rule, message)
        except BuildError as exc:
            LOGGER.error("Cannot build command for rule %r: %s", rule.name, exc)
            return failed("build", exc)

        timeout = self._config.command_timeout
        try:
            result = await self._runner.execute(invocation, timeout)
        except LaunchError as exc:
            LOGGER.error("Cannot run command for rule %r: %s", rule.name, exc)
            return failed("launch", exc)

        try:
            body = interpret(result)
        except UnknownOutputFormat as exc:
            LOGGER.error("Cannot parse output of rule %r: %s", rule.name, exc)
            return failed("interpret", exc)

        if body is None:
            LOGGER.debug("Rule %r produced no reply", rule.name)
            return DispatchOutcome(message, DispatchStatus.SUPPRESSED, rule_name=rule.name)

        reply = OutboundReply(
            conversation_id=message.conversation_id,
            body=body,
            reply_to_message_id=message.message_id,
            suppress_prior_keyboard=True,
        )
        try:
            await self._sender.send(reply)
        except SendError as exc:
            LOGGER.error("Failed to reply to message %s: %s", message.message_id, exc)
            return failed("send", exc)

        LOGGER.info("Replied to message %s (%s)", message.message_id, rule.name)
        return DispatchOutcome(message, DispatchStatus.SENT, rule_name=rule.name, reply=reply)
