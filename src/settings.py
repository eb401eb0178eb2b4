"""Configuration loading for telecmd.

All user-editable settings (rules, timeout, pool size, logging) live in a
single JSON file for quick edits without touching Python. Loading returns an
immutable Settings value that is passed explicitly to the pieces that need it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
import json
import os
from typing import Any, Optional

from core.config import DEFAULT_POOL_CAPACITY, DispatchConfig, command_timeout_from
from core.errors import ConfigError
from core.rules_engine import RuleSet

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits next to the project so the bot and the config panel share it.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")


@dataclass(frozen=True)
class Settings:
    """Validated configuration for one bot process."""

    rules: RuleSet
    dispatch: DispatchConfig
    logging: dict[str, Any] = field(default_factory=dict)
    path: Optional[str] = None

    @property
    def command_timeout(self) -> timedelta:
        return self.dispatch.command_timeout


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Cannot parse config file {path}: {exc.msg} (line {exc.lineno})") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc.strerror or exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError("config root must be an object")
    return data


def _pool_capacity(raw_value: Any) -> int:
    if raw_value is None:
        return DEFAULT_POOL_CAPACITY
    # bool is an int subclass; "true" is not a pool size.
    if isinstance(raw_value, bool) or not isinstance(raw_value, int) or raw_value < 1:
        raise ConfigError("pool_capacity must be a positive integer")
    return raw_value


def _allowed_chats(raw_value: Any) -> frozenset[int]:
    if raw_value is None:
        return frozenset()
    if not isinstance(raw_value, list):
        raise ConfigError("allowed_chats must be a list of chat ids")
    chats: set[int] = set()
    for entry in raw_value:
        try:
            chats.add(int(entry))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"allowed_chats entry {entry!r} is not a chat id") from exc
    return frozenset(chats)


def settings_from_dict(config: dict, path: Optional[str] = None) -> Settings:
    """Validate a raw config mapping. Raises ConfigError on any problem."""

    rules_config = config.get("rules", [])
    if not isinstance(rules_config, list):
        raise ConfigError("rules must be a list")

    dispatch = DispatchConfig(
        command_timeout=command_timeout_from(config.get("command_timeout")),
        pool_capacity=_pool_capacity(config.get("pool_capacity")),
        allowed_conversations=_allowed_chats(config.get("allowed_chats")),
    )

    logging_config = config.get("logging", {}) or {}
    if not isinstance(logging_config, dict):
        raise ConfigError("logging must be an object")

    return Settings(
        rules=RuleSet.from_config(rules_config),
        dispatch=dispatch,
        logging=logging_config,
        path=path,
    )


def load_settings(path: Optional[str] = None) -> Settings:
    """Load and validate the config file (config.json by default)."""

    path = path or CONFIG_PATH
    return settings_from_dict(_load_json_config(path), path=path)
