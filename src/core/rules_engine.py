"""Rule compilation and matching logic (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from core.errors import ConfigError


@dataclass(frozen=True)
class Rule:
    """Compiled rule used by the dispatcher."""

    name: str
    pattern: re.Pattern
    command: Tuple[str, ...]
    working_dir: Optional[str] = None
    use_stdin: bool = False
    environment: Tuple[str, ...] = ()

    @property
    def raw_pattern(self) -> str:
        return self.pattern.pattern


def _rule_label(index: int, rule: dict) -> str:
    name = rule.get("name")
    if isinstance(name, str) and name:
        return f"rule {index} ({name})"
    return f"rule {index}"


def _string_list(value: Any, field: str, label: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"invalid {label}: {field} must be a list of strings")
    return list(value)


def _flag(value: Any, field: str, label: str, default: bool) -> bool:
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"invalid {label}: {field} must be true or false")
    return value


def compile_rule(index: int, rule: Any) -> Rule:
    """Validate one rule config entry and compile its pattern."""

    if not isinstance(rule, dict):
        raise ConfigError(f"invalid rule {index}: expected an object")
    label = _rule_label(index, rule)

    name = rule.get("name", "")
    if not isinstance(name, str):
        raise ConfigError(f"invalid {label}: name must be a string")

    raw_pattern = rule.get("pattern")
    if not isinstance(raw_pattern, str):
        raise ConfigError(f"invalid {label}: pattern is required")
    try:
        pattern = re.compile(raw_pattern)
    except re.error as exc:
        raise ConfigError(f"invalid {label}: invalid regex: {exc}") from exc

    command = _string_list(rule.get("command"), "command", label)
    if not command:
        raise ConfigError(f"invalid {label}: command cannot be empty")

    environment = _string_list(rule.get("env"), "env", label)
    for entry in environment:
        if "=" not in entry or entry.startswith("="):
            raise ConfigError(f"invalid {label}: env entry {entry!r} must look like KEY=VALUE")

    working_dir = rule.get("working_dir") or None
    if working_dir is not None and not isinstance(working_dir, str):
        raise ConfigError(f"invalid {label}: working_dir must be a string")

    use_stdin = _flag(rule.get("use_stdin"), "use_stdin", label, False)
    _flag(rule.get("enabled"), "enabled", label, True)

    return Rule(
        name=name,
        pattern=pattern,
        command=tuple(command),
        working_dir=working_dir,
        use_stdin=use_stdin,
        environment=tuple(environment),
    )


def build_rules(rules_config: Iterable[Any]) -> List[Rule]:
    """Validate rule configs and compile regex patterns.

    Disabled rules are validated too, so a config never carries a broken rule
    that would only fail once someone enables it. Any invalid rule raises
    ConfigError and the whole load fails.
    """

    compiled: List[Rule] = []
    for index, rule in enumerate(rules_config):
        built = compile_rule(index, rule)
        if rule.get("enabled") is False:
            continue
        compiled.append(built)
    if not compiled:
        raise ConfigError("rule list cannot be empty")
    return compiled


def match_rule(text: str, rules: Iterable[Rule]) -> Optional[Rule]:
    """Return the first rule whose pattern matches anywhere in the text."""

    for rule in rules:
        if rule.pattern.search(text):
            return rule
    return None


class RuleSet:
    """Ordered, immutable collection of rules. First match wins."""

    def __init__(self, rules: Iterable[Rule]) -> None:
        self._rules: Tuple[Rule, ...] = tuple(rules)

    @classmethod
    def from_config(cls, rules_config: Iterable[Any]) -> "RuleSet":
        return cls(build_rules(rules_config))

    def match(self, text: str) -> Optional[Rule]:
        return match_rule(text, self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)
