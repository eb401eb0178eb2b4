from __future__ import annotations

from datetime import timedelta

import pytest

from core.errors import UnknownOutputFormat
from core.models import NonZeroExit, Success, TimedOut
from core.output import PlainOutput, StructuredOutput, classify_output, interpret


def test_structured_output_uses_message_field() -> None:
    assert interpret(Success(stdout=b'{"message":"hi"}')) == "hi"


def test_structured_output_may_have_surrounding_whitespace() -> None:
    assert interpret(Success(stdout=b'  \n{"message": "hi", "extra": 1}\n')) == "hi"


def test_plain_output_is_returned_verbatim() -> None:
    assert interpret(Success(stdout=b"hello world")) == "hello world"
    assert interpret(Success(stdout=b"  indented\n")) == "  indented\n"


def test_invalid_structured_output_raises() -> None:
    with pytest.raises(UnknownOutputFormat):
        interpret(Success(stdout=b"{not valid json"))


def test_non_string_message_field_is_unknown_format() -> None:
    with pytest.raises(UnknownOutputFormat):
        interpret(Success(stdout=b'{"message": 42}'))


def test_structured_output_without_message_yields_no_reply() -> None:
    assert interpret(Success(stdout=b'{"status": "ok"}')) is None


def test_empty_output_yields_no_reply() -> None:
    assert interpret(Success(stdout=b"")) is None
    assert interpret(Success(stdout=b" \n\t")) is None
    assert interpret(Success(stdout=b'{"message": ""}')) is None


def test_json_array_is_plain_text() -> None:
    assert interpret(Success(stdout=b"[1, 2]")) == "[1, 2]"


def test_invalid_utf8_is_replaced() -> None:
    assert interpret(Success(stdout=b"caf\xe9")) == "caf�"


def test_non_zero_exit_reports_code_and_stderr() -> None:
    body = interpret(NonZeroExit(code=3, stderr=b"boom"))

    assert body is not None
    assert "3" in body
    assert "boom" in body
    assert body == "error: command exited with code=3\n\nboom"


def test_timeout_reports_configured_duration() -> None:
    assert interpret(TimedOut(timeout=timedelta(minutes=1))) == "error: command timed out after 1m"
    assert interpret(TimedOut(timeout=timedelta(seconds=1.5))) == "error: command timed out after 1.5s"


def test_classifier_returns_tagged_results() -> None:
    assert classify_output("plain") == PlainOutput(text="plain")
    assert classify_output('{"message": "x"}') == StructuredOutput(message="x")
