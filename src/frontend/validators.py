"""Validation helpers for config editing."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any

from core.config import parse_duration


@dataclass
class FieldError:
    field: str
    message: str


def split_lines(value: str) -> list[str]:
    """One entry per non-blank line; surrounding whitespace is dropped."""

    return [line.strip() for line in value.splitlines() if line.strip()]


def validate_pattern(raw_value: str) -> str | None:
    if not raw_value:
        return "pattern is required"
    try:
        re.compile(raw_value)
    except re.error as exc:
        return f"invalid regex: {exc}"
    return None


def validate_command(args: list[str]) -> str | None:
    if not args:
        return "command needs at least the executable"
    return None


def validate_env(entries: list[str]) -> str | None:
    for entry in entries:
        if "=" not in entry or entry.startswith("="):
            return f"env entry {entry!r} must look like KEY=VALUE"
    return None


def validate_rule(rule: dict[str, Any]) -> list[FieldError]:
    """Return every problem with a rule, in form order."""

    errors: list[FieldError] = []
    pattern_error = validate_pattern(rule.get("pattern", "") or "")
    if pattern_error:
        errors.append(FieldError("pattern", pattern_error))
    command_error = validate_command(rule.get("command", []) or [])
    if command_error:
        errors.append(FieldError("command", command_error))
    env_error = validate_env(rule.get("env", []) or [])
    if env_error:
        errors.append(FieldError("env", env_error))
    return errors


def validate_timeout(raw_value: str) -> str | None:
    raw_value = raw_value.strip()
    if not raw_value:
        return None
    parsed = parse_duration(raw_value)
    if parsed is None:
        return "use a duration like 30s, 1m or 1m30s"
    if parsed.total_seconds() <= 0:
        return "timeout must be positive"
    return None


def parse_chat_ids(raw_value: str) -> tuple[list[int], str | None]:
    chats: list[int] = []
    for line in split_lines(raw_value):
        try:
            chats.append(int(line))
        except ValueError:
            return [], f"chat id {line!r} must be numeric"
    return chats, None
