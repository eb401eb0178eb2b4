"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
import re
from typing import FrozenSet, Optional

DEFAULT_COMMAND_TIMEOUT = timedelta(minutes=1)
DEFAULT_POOL_CAPACITY = 4

_UNIT_MICROSECONDS = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "μs": 1.0,
    "ms": 1000.0,
    "s": 1000.0 * 1000,
    "m": 60 * 1000.0 * 1000,
    "h": 60 * 60 * 1000.0 * 1000,
}
# Largest duration an int64 nanosecond count can hold (about 2562047h).
_MAX_DURATION_MICROSECONDS = (2**63 - 1) / 1000
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


@dataclass(frozen=True)
class DispatchConfig:
    """Dispatcher settings: per-command deadline and worker pool size."""

    command_timeout: timedelta = DEFAULT_COMMAND_TIMEOUT
    pool_capacity: int = DEFAULT_POOL_CAPACITY
    allowed_conversations: FrozenSet[int] = field(default_factory=frozenset)


def parse_duration(value: str) -> Optional[timedelta]:
    """Parse a duration string such as "90s", "1m30s" or "1.5h".

    Returns None when the value is not a valid duration or is too large to
    represent.
    """

    text = value.strip()
    if text in {"0", "+0", "-0"}:
        return timedelta(0)
    sign = 1
    if text[:1] in {"+", "-"}:
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if not text:
        return None

    total = 0.0
    position = 0
    while position < len(text):
        part = _DURATION_PART.match(text, position)
        if part is None:
            return None
        total += float(part.group(1)) * _UNIT_MICROSECONDS[part.group(2)]
        position = part.end()
    if total > _MAX_DURATION_MICROSECONDS:
        return None
    try:
        return timedelta(microseconds=sign * total)
    except OverflowError:
        return None


def command_timeout_from(raw_value: object) -> timedelta:
    """Return the configured command timeout, falling back to one minute."""

    if not isinstance(raw_value, str):
        return DEFAULT_COMMAND_TIMEOUT
    parsed = parse_duration(raw_value)
    if parsed is None or parsed <= timedelta(0):
        return DEFAULT_COMMAND_TIMEOUT
    return parsed


def format_duration(value: timedelta) -> str:
    """Render a duration compactly, e.g. "1m30s" or "500ms"."""

    total_ms = int(round(value.total_seconds() * 1000))
    if total_ms == 0:
        return "0s"
    if total_ms < 1000:
        return f"{total_ms}ms"

    hours, remainder = divmod(total_ms, 3600 * 1000)
    minutes, remainder = divmod(remainder, 60 * 1000)
    seconds = remainder / 1000
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if seconds:
        parts.append(f"{seconds:g}s")
    return "".join(parts)
