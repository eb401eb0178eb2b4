"""Config file state for the panel: loading, saving and dirty tracking."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any


@dataclass
class ConfigState:
    path: Path
    data: dict[str, Any] | None = None
    dirty: bool = False
    error: str | None = None

    def load(self) -> None:
        """Read the config file; problems are kept in `error`, never raised."""

        self.dirty = False
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(loaded, dict):
                raise ValueError("config root must be an object")
            self.data = loaded
            self.error = None
        except FileNotFoundError:
            # A missing file starts an empty config that can be saved.
            self.data = {"rules": []}
            self.error = f"{self.path.name} missing"
        except json.JSONDecodeError as exc:
            self.data = None
            self.error = f"{self.path.name} error: {exc.msg}"
        except ValueError as exc:
            self.data = None
            self.error = str(exc)

    def save(self) -> bool:
        if self.data is None:
            self.error = "Nothing to save"
            return False
        try:
            self.path.write_text(
                json.dumps(self.data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as exc:
            self.error = f"save failed: {exc.strerror or exc}"
            return False
        self.dirty = False
        self.error = None
        return True

    def section(self, key: str) -> Any:
        return (self.data or {}).get(key)

    def update_section(self, key: str, value: Any) -> None:
        if self.data is None:
            self.data = {}
        self.data[key] = value
        self.dirty = True

    def remove_section(self, key: str) -> None:
        if self.data is not None and key in self.data:
            del self.data[key]
            self.dirty = True
