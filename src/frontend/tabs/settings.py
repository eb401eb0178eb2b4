"""Settings tab implementation."""

from __future__ import annotations

from typing import Any, Optional

from textual import on
from textual.containers import Container, Horizontal, ScrollableContainer, Vertical
from textual.widgets import ContentSwitcher, DataTable, Input, Select, Static, Switch, TextArea

from core.config import DEFAULT_POOL_CAPACITY
from ..validators import parse_chat_ids, split_lines, validate_timeout


class SettingsTab(Container):
    """Settings tab for editing dispatch limits and logging."""

    LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

    SECTION_LABELS = [
        ("dispatch", "Dispatch", "Timeout, pool size, allowed chats"),
        ("logging", "Logging", "Console/file logging + redaction"),
    ]

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._table_ready = False

    def compose(self):
        with Vertical(id="settings-panel"):
            with Horizontal(id="settings-body"):
                with Container(id="settings-left"):
                    yield DataTable(id="settings-table", cursor_type="row")
                with Container(id="settings-right"):
                    with ContentSwitcher(id="settings-forms"):
                        with Container(id="settings-dispatch"):
                            yield Static("Dispatch", classes="settings-title")
                            yield Static("command_timeout (e.g. 30s, 1m, 1m30s)", classes="form-label")
                            yield Input(placeholder="1m", id="dispatch-timeout")
                            yield Static("pool_capacity (commands running at once)", classes="form-label")
                            yield Input(placeholder=str(DEFAULT_POOL_CAPACITY), id="dispatch-pool")
                            yield Static("allowed_chats (one chat id per line, empty = any)", classes="form-label")
                            yield TextArea(id="dispatch-allowed-chats")
                            yield Static("", id="dispatch-error", classes="settings-error")

                        with ScrollableContainer(id="settings-logging"):
                            yield Static("Logging", classes="settings-title")
                            yield Static("enabled", classes="form-label")
                            yield Switch(id="logging-enabled")
                            yield Static("level", classes="form-label")
                            yield Select(
                                [(level, level) for level in self.LOG_LEVELS],
                                id="logging-level",
                                allow_blank=False,
                            )
                            yield Static("console", classes="form-label")
                            yield Switch(id="logging-console")
                            yield Static("file.enabled", classes="form-label")
                            yield Switch(id="logging-file-enabled")
                            yield Static("file.path", classes="form-label")
                            yield Input(placeholder="logs/telecmd.log", id="logging-file-path")
                            yield Static("file.max_bytes", classes="form-label")
                            yield Input(placeholder="5242880", id="logging-file-max-bytes")
                            yield Static("file.backup_count", classes="form-label")
                            yield Input(placeholder="5", id="logging-file-backup")
                            yield Static("redact.enabled", classes="form-label")
                            yield Switch(id="logging-redact-enabled")
                            yield Static("redact.patterns (env var names, one per line)", classes="form-label")
                            yield TextArea(id="logging-redact-patterns")
                            yield Static("", id="logging-error", classes="settings-error")

    def on_mount(self) -> None:
        table = self.query_one("#settings-table", DataTable)
        table.add_column("section", key="section", width=14)
        table.add_column("description", key="description", width=34)
        for key, label, description in self.SECTION_LABELS:
            table.add_row(label, description, key=key)
        table.zebra_stripes = True
        self._table_ready = True
        self._select_section("dispatch")
        self.reload_from_config()

    def reload_from_config(self) -> None:
        if not self._table_ready:
            return
        self._loading_form = True
        self._load_dispatch()
        self._load_logging()
        self._loading_form = False

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        row_key = event.row_key
        self._select_section(str(getattr(row_key, "value", row_key)))

    def _select_section(self, section_id: str) -> None:
        switcher = self.query_one("#settings-forms", ContentSwitcher)
        switcher.current = f"settings-{section_id}"

    def _state(self):
        return self.app.config_state

    def _logging_section(self) -> dict[str, Any]:
        section = self._state().section("logging")
        if isinstance(section, dict):
            return section
        return {}

    def _load_dispatch(self) -> None:
        state = self._state()
        timeout = state.section("command_timeout") or ""
        pool = state.section("pool_capacity")
        chats = state.section("allowed_chats") or []
        self.query_one("#dispatch-timeout", Input).value = str(timeout)
        self.query_one("#dispatch-pool", Input).value = "" if pool is None else str(pool)
        self.query_one("#dispatch-allowed-chats", TextArea).text = "\n".join(str(chat) for chat in chats)
        self._set_error("dispatch-error", "")

    def _load_logging(self) -> None:
        logging = self._logging_section()
        file_cfg = self._get_subdict(logging, "file")
        redact_cfg = self._get_subdict(logging, "redact")
        file_enabled = bool(file_cfg.get("enabled", False))
        redact_enabled = bool(redact_cfg.get("enabled", True))

        self.query_one("#logging-enabled", Switch).value = bool(logging.get("enabled", True))
        level = str(logging.get("level", "INFO")).upper()
        select = self.query_one("#logging-level", Select)
        if level in self.LOG_LEVELS:
            select.value = level
            self._set_error("logging-error", "")
        else:
            select.value = "INFO"
            self._set_error("logging-error", f"Invalid level: {level}")
        self.query_one("#logging-console", Switch).value = bool(logging.get("console", True))
        self.query_one("#logging-file-enabled", Switch).value = file_enabled
        self.query_one("#logging-file-path", Input).value = str(file_cfg.get("path", "logs/telecmd.log"))
        self.query_one("#logging-file-max-bytes", Input).value = str(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        self.query_one("#logging-file-backup", Input).value = str(file_cfg.get("backup_count", 5))
        self.query_one("#logging-redact-enabled", Switch).value = redact_enabled
        self.query_one("#logging-redact-patterns", TextArea).text = "\n".join(
            redact_cfg.get("patterns", ["TELEGRAM_BOT_TOKEN", "API_HASH"]) or []
        )
        self._apply_logging_state(file_enabled, redact_enabled)

    def _set_error(self, error_id: str, message: str) -> None:
        self.query_one(f"#{error_id}", Static).update(message)

    def _apply_logging_state(self, file_enabled: bool, redact_enabled: bool) -> None:
        self.query_one("#logging-file-path", Input).disabled = not file_enabled
        self.query_one("#logging-file-max-bytes", Input).disabled = not file_enabled
        self.query_one("#logging-file-backup", Input).disabled = not file_enabled
        self.query_one("#logging-redact-patterns", TextArea).disabled = not redact_enabled

    def _update_top_level(self, key: str, value: Any) -> None:
        if self._state().section(key) == value:
            return
        self.app.update_config_section(key, value)

    def _update_logging(self, path: tuple[str, ...], value: Any) -> None:
        logging = self._logging_section()
        parent = logging
        for key in path[:-1]:
            child = self._get_subdict(parent, key)
            parent[key] = child
            parent = child
        if parent.get(path[-1]) == value:
            return
        parent[path[-1]] = value
        self.app.update_config_section("logging", logging)

    @on(Input.Changed, "#dispatch-timeout")
    def _on_timeout_changed(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        error = validate_timeout(event.value)
        self._set_error("dispatch-error", error or "")
        if error:
            return
        value = event.value.strip()
        if value:
            self._update_top_level("command_timeout", value)
        else:
            self.app.remove_config_section("command_timeout")

    @on(Input.Changed, "#dispatch-pool")
    def _on_pool_changed(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        parsed = self._parse_int(event.value, "dispatch-error", minimum=1)
        if parsed is not None:
            self._update_top_level("pool_capacity", parsed)

    @on(TextArea.Changed, "#dispatch-allowed-chats")
    def _on_allowed_chats_changed(self, event: TextArea.Changed) -> None:
        if self._loading_form:
            return
        chats, error = parse_chat_ids(event.text_area.text)
        self._set_error("dispatch-error", error or "")
        if error is None:
            self._update_top_level("allowed_chats", chats)

    @on(Switch.Changed, "#logging-enabled")
    def _on_logging_enabled(self, event: Switch.Changed) -> None:
        if not self._loading_form:
            self._update_logging(("enabled",), bool(event.value))

    @on(Select.Changed, "#logging-level")
    def _on_logging_level(self, event: Select.Changed) -> None:
        if self._loading_form or event.value is Select.BLANK:
            return
        self._update_logging(("level",), event.value)

    @on(Switch.Changed, "#logging-console")
    def _on_logging_console(self, event: Switch.Changed) -> None:
        if not self._loading_form:
            self._update_logging(("console",), bool(event.value))

    @on(Switch.Changed, "#logging-file-enabled")
    def _on_logging_file_enabled(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        self._update_logging(("file", "enabled"), bool(event.value))
        redact_enabled = self.query_one("#logging-redact-enabled", Switch).value
        self._apply_logging_state(bool(event.value), bool(redact_enabled))

    @on(Input.Changed, "#logging-file-path")
    def _on_logging_file_path(self, event: Input.Changed) -> None:
        if not self._loading_form:
            self._update_logging(("file", "path"), event.value)

    @on(Input.Changed, "#logging-file-max-bytes")
    def _on_logging_file_max(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        parsed = self._parse_int(event.value, "logging-error")
        if parsed is not None:
            self._update_logging(("file", "max_bytes"), parsed)

    @on(Input.Changed, "#logging-file-backup")
    def _on_logging_file_backup(self, event: Input.Changed) -> None:
        if self._loading_form:
            return
        parsed = self._parse_int(event.value, "logging-error")
        if parsed is not None:
            self._update_logging(("file", "backup_count"), parsed)

    @on(Switch.Changed, "#logging-redact-enabled")
    def _on_logging_redact_enabled(self, event: Switch.Changed) -> None:
        if self._loading_form:
            return
        self._update_logging(("redact", "enabled"), bool(event.value))
        file_enabled = self.query_one("#logging-file-enabled", Switch).value
        self._apply_logging_state(bool(file_enabled), bool(event.value))

    @on(TextArea.Changed, "#logging-redact-patterns")
    def _on_logging_redact_patterns(self, event: TextArea.Changed) -> None:
        if not self._loading_form:
            self._update_logging(("redact", "patterns"), split_lines(event.text_area.text))

    def _parse_int(self, value: str, error_id: str, minimum: int = 0) -> Optional[int]:
        stripped = value.strip()
        if not stripped:
            self._set_error(error_id, "")
            return None
        if not stripped.isdigit() or int(stripped) < minimum:
            self._set_error(error_id, f"Enter an integer >= {minimum}")
            return None
        self._set_error(error_id, "")
        return int(stripped)

    @staticmethod
    def _get_subdict(parent: dict[str, Any], key: str) -> dict[str, Any]:
        value = parent.get(key)
        if isinstance(value, dict):
            return value
        return {}
