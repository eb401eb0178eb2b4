from __future__ import annotations

import pytest

from core.errors import ConfigError
from core.rules_engine import RuleSet, build_rules


def _rule(name: str, pattern: str, **extra) -> dict:
    rule = {"name": name, "pattern": pattern, "command": ["echo", name]}
    rule.update(extra)
    return rule


def test_first_matching_rule_wins() -> None:
    rules = RuleSet.from_config(
        [
            _rule("specific", r"^/deploy prod"),
            _rule("generic", r"^/deploy"),
            _rule("anything", r"."),
        ]
    )

    assert rules.match("/deploy prod now").name == "specific"
    assert rules.match("/deploy staging").name == "generic"
    assert rules.match("hello").name == "anything"


def test_match_is_an_unanchored_search() -> None:
    rules = RuleSet.from_config([_rule("weather", r"weather")])

    rule = rules.match("what's the weather like?")

    assert rule is not None
    assert rule.name == "weather"


def test_no_match_returns_none() -> None:
    rules = RuleSet.from_config([_rule("uptime", r"^/uptime")])

    assert rules.match("please /uptime") is None


def test_duplicate_patterns_keep_configuration_order() -> None:
    rules = RuleSet.from_config([_rule("first", r"^/x"), _rule("second", r"^/x")])

    assert rules.match("/x").name == "first"


def test_disabled_rules_are_skipped() -> None:
    rules = RuleSet.from_config(
        [
            _rule("off", r"^/x", enabled=False),
            _rule("on", r"^/x"),
        ]
    )

    assert len(rules) == 1
    assert rules.match("/x").name == "on"


def test_rule_fields_are_carried_over() -> None:
    [rule] = build_rules(
        [
            _rule(
                "notes",
                r"^/note",
                working_dir="/tmp",
                use_stdin=True,
                env=["A=1", "B=2"],
            )
        ]
    )

    assert rule.command == ("echo", "notes")
    assert rule.working_dir == "/tmp"
    assert rule.use_stdin is True
    assert rule.environment == ("A=1", "B=2")
    assert rule.raw_pattern == r"^/note"


def test_empty_working_dir_means_default() -> None:
    [rule] = build_rules([_rule("x", "x", working_dir="")])

    assert rule.working_dir is None


def test_invalid_regex_fails_the_load() -> None:
    with pytest.raises(ConfigError, match="invalid regex"):
        build_rules([_rule("ok", "ok"), _rule("broken", "([")])


def test_invalid_regex_in_disabled_rule_still_fails() -> None:
    with pytest.raises(ConfigError):
        build_rules([_rule("ok", "ok"), _rule("broken", "([", enabled=False)])


def test_empty_command_fails_the_load() -> None:
    with pytest.raises(ConfigError, match="command cannot be empty"):
        build_rules([{"name": "empty", "pattern": "x", "command": []}])


def test_missing_command_fails_the_load() -> None:
    with pytest.raises(ConfigError):
        build_rules([{"name": "none", "pattern": "x"}])


def test_malformed_env_entry_fails_the_load() -> None:
    with pytest.raises(ConfigError, match="KEY=VALUE"):
        build_rules([_rule("env", "x", env=["NOT_AN_ASSIGNMENT"])])


def test_error_names_the_rule() -> None:
    with pytest.raises(ConfigError, match=r"rule 1 \(second\)"):
        build_rules([_rule("first", "x"), _rule("second", "(")])


def test_empty_rule_list_fails_the_load() -> None:
    with pytest.raises(ConfigError, match="cannot be empty"):
        build_rules([])


def test_use_stdin_must_be_a_boolean() -> None:
    with pytest.raises(ConfigError, match="use_stdin must be true or false"):
        build_rules([_rule("notes", "x", use_stdin="false")])


def test_enabled_must_be_a_boolean() -> None:
    with pytest.raises(ConfigError, match="enabled must be true or false"):
        build_rules([_rule("ok", "ok"), _rule("off", "x", enabled="no")])
