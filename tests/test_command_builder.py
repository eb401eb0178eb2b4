from __future__ import annotations

import os

import pytest

from core.command_builder import ARGUMENT_SEPARATOR, build_invocation
from core.errors import BuildError
from core.models import InboundMessage, RepliedMessage
from core.rules_engine import Rule, build_rules


def _message(text: str = "/run it", reply_to=None, sender_id=42) -> InboundMessage:
    return InboundMessage(
        text=text,
        conversation_id=-100123,
        sender_id=sender_id,
        message_id=7,
        reply_to=reply_to,
    )


def _rule(**extra) -> Rule:
    rule = {"name": "run", "pattern": "^/run", "command": ["tool", "--flag", "value"]}
    rule.update(extra)
    return build_rules([rule])[0]


def test_message_text_is_the_final_argument() -> None:
    text = "/run $(rm -rf /) `id` ; echo 'quoted' \"twice\" --help"

    invocation = build_invocation(_rule(), _message(text), base_environment=[])

    assert invocation.executable == "tool"
    assert invocation.arguments == ("--flag", "value", ARGUMENT_SEPARATOR, text)
    assert invocation.arguments[-1] == text
    assert invocation.stdin is None


def test_stdin_mode_does_not_add_arguments() -> None:
    text = "/run multi\nline ünïcode"

    invocation = build_invocation(_rule(use_stdin=True), _message(text), base_environment=[])

    assert invocation.arguments == ("--flag", "value")
    assert text not in invocation.arguments
    assert invocation.stdin == text.encode("utf-8")


def test_working_directory_defaults_to_current_directory() -> None:
    invocation = build_invocation(_rule(), _message(), base_environment=[])

    assert invocation.working_directory == os.getcwd()


def test_working_directory_from_rule() -> None:
    invocation = build_invocation(_rule(working_dir="/srv/scripts"), _message(), base_environment=[])

    assert invocation.working_directory == "/srv/scripts"


def test_environment_is_layered_in_order() -> None:
    invocation = build_invocation(
        _rule(env=["SHARED=rule", "RULE_ONLY=1"]),
        _message(),
        base_environment=["SHARED=base", "PATH=/usr/bin"],
    )

    assert invocation.environment == (
        "SHARED=base",
        "PATH=/usr/bin",
        "SHARED=rule",
        "RULE_ONLY=1",
        "TELEGRAM_CHAT_ID=-100123",
        "TELEGRAM_FROM_USER_ID=42",
    )
    assert invocation.environment_mapping()["SHARED"] == "rule"


def test_message_variables_override_rule_variables() -> None:
    invocation = build_invocation(
        _rule(env=["TELEGRAM_CHAT_ID=spoofed"]),
        _message(),
        base_environment=[],
    )

    assert invocation.environment_mapping()["TELEGRAM_CHAT_ID"] == "-100123"


def test_reply_variables_only_for_replies() -> None:
    plain = build_invocation(_rule(), _message(), base_environment=[])
    reply = build_invocation(
        _rule(),
        _message(reply_to=RepliedMessage(id=5, text="original text")),
        base_environment=[],
    )

    assert "TELEGRAM_REPLY_TO_MESSAGE_ID" not in plain.environment_mapping()
    env = reply.environment_mapping()
    assert env["TELEGRAM_REPLY_TO_MESSAGE_ID"] == "5"
    assert env["TELEGRAM_REPLY_TO_MESSAGE_TEXT"] == "original text"


def test_sender_variable_skipped_without_sender() -> None:
    invocation = build_invocation(_rule(), _message(sender_id=None), base_environment=[])

    assert "TELEGRAM_FROM_USER_ID" not in invocation.environment_mapping()


def test_inherited_environment_is_the_base_layer(monkeypatch) -> None:
    monkeypatch.setenv("TELECMD_TEST_BASE", "inherited")

    invocation = build_invocation(_rule(), _message())

    assert "TELECMD_TEST_BASE=inherited" in invocation.environment
    assert invocation.environment.index("TELECMD_TEST_BASE=inherited") < invocation.environment.index(
        "TELEGRAM_CHAT_ID=-100123"
    )


def test_building_does_not_mutate_the_base_environment() -> None:
    base = ["A=1"]

    build_invocation(_rule(env=["B=2"]), _message(), base_environment=base)

    assert base == ["A=1"]


def test_empty_command_raises_build_error() -> None:
    rule = Rule(name="broken", pattern=_rule().pattern, command=())

    with pytest.raises(BuildError):
        build_invocation(rule, _message(), base_environment=[])
