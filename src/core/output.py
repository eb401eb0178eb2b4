"""Interpretation of command output into reply text.

Output is classified in two steps: a structural prefix check decides whether
stdout looks like a JSON object, then a parse into the known shape
({"message": "..."}) either succeeds or raises UnknownOutputFormat. Plain text
is passed through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Optional, Union

from core.config import format_duration
from core.errors import UnknownOutputFormat
from core.models import ExecutionResult, NonZeroExit, Success, TimedOut

MESSAGE_FIELD = "message"


@dataclass(frozen=True)
class PlainOutput:
    text: str


@dataclass(frozen=True)
class StructuredOutput:
    message: str


ClassifiedOutput = Union[PlainOutput, StructuredOutput]


def looks_structured(text: str) -> bool:
    return text.strip().startswith("{")


def parse_structured(text: str) -> StructuredOutput:
    """Parse stdout that looks like a JSON object carrying a message field."""

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise UnknownOutputFormat(f"unknown output format: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise UnknownOutputFormat("unknown output format: expected a JSON object")
    message = payload.get(MESSAGE_FIELD, "")
    if message is None:
        message = ""
    if not isinstance(message, str):
        raise UnknownOutputFormat(f"unknown output format: {MESSAGE_FIELD!r} must be a string")
    return StructuredOutput(message=message)


def classify_output(text: str) -> ClassifiedOutput:
    if looks_structured(text):
        return parse_structured(text)
    return PlainOutput(text=text)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def render_result(result: ExecutionResult) -> str:
    """Return the reply body for an execution result, possibly empty."""

    if isinstance(result, Success):
        classified = classify_output(_decode(result.stdout))
        if isinstance(classified, StructuredOutput):
            return classified.message
        return classified.text
    if isinstance(result, NonZeroExit):
        return f"error: command exited with code={result.code}\n\n{_decode(result.stderr)}"
    if isinstance(result, TimedOut):
        return f"error: command timed out after {format_duration(result.timeout)}"
    raise TypeError(f"unsupported execution result: {result!r}")


def interpret(result: ExecutionResult) -> Optional[str]:
    """Return the reply body, or None when nothing should be sent.

    Raises UnknownOutputFormat when stdout looks structured but is not.
    """

    body = render_result(result)
    if not body.strip():
        return None
    return body
