"""Rules tab implementation."""

from __future__ import annotations

import shlex
from typing import Any, Iterable, Optional

from textual import on
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.widgets import Button, DataTable, Input, Static, Switch, TextArea

from core.command_builder import build_invocation
from core.errors import ConfigError
from core.models import InboundMessage
from core.rules_engine import compile_rule, match_rule
from ..modals import delete_rule_screen
from ..validators import split_lines, validate_rule


class RulesTab(Container):
    """Rules tab for editing config.rules and testing which rule fires."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._loading_form = False
        self._current_row_key: Optional[str] = None
        self._table_ready = False

    def compose(self):
        with Vertical(id="rules-panel"):
            with Horizontal(id="rules-body"):
                with Container(id="rules-left"):
                    yield DataTable(id="rules-table", cursor_type="row")
                with VerticalScroll(id="rules-right"):
                    yield Static("Rule editor", id="rules-title")
                    yield Static("name", classes="form-label")
                    yield Input(placeholder="Rule name", id="rule-name")
                    yield Static("enabled", classes="form-label")
                    yield Switch(value=True, id="rule-enabled")
                    yield Static("pattern (regex, searched anywhere in the message)", classes="form-label")
                    yield Input(placeholder="^/uptime", id="rule-pattern")
                    yield Static("command (executable, then one argument per line)", classes="form-label")
                    yield TextArea(id="rule-command")
                    yield Static("env (KEY=VALUE, one per line)", classes="form-label")
                    yield TextArea(id="rule-env")
                    yield Static("working_dir (empty = bot's directory)", classes="form-label")
                    yield Input(placeholder="/srv/scripts", id="rule-working-dir")
                    yield Static("use_stdin (pass the message on stdin instead of as an argument)", classes="form-label")
                    yield Switch(value=False, id="rule-use-stdin")
                    yield Static("", id="rule-errors", classes="settings-error")
                    yield Static("Rule tester", id="rules-test-title")
                    yield TextArea(id="rule-test-text")
                    with Horizontal(id="rules-test-actions"):
                        yield Button("Test", id="rule-test", variant="primary")
                    yield Static("", id="rule-test-result")
            with Horizontal(id="rules-actions"):
                yield Button("Add rule", id="add-rule", variant="success")
                yield Button("Duplicate rule", id="duplicate-rule")
                yield Button("Delete rule", id="delete-rule", variant="error")

    def on_mount(self) -> None:
        table = self.query_one("#rules-table", DataTable)
        table.add_column("enabled", key="enabled", width=8)
        table.add_column("name", key="name", width=24)
        table.add_column("pattern", key="pattern", width=28)
        table.zebra_stripes = True
        self._table_ready = True
        self.reload_from_config()
        self._set_form_state(None)

    def reload_from_config(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#rules-table", DataTable)
        table.clear()
        for index, rule in self._iter_rules():
            enabled_label = "yes" if rule.get("enabled", True) else "no"
            table.add_row(enabled_label, rule.get("name", ""), rule.get("pattern", ""), key=str(index))
        self._current_row_key = None
        self._set_form_state(None)
        self._update_action_state()

    def _iter_rules(self) -> Iterable[tuple[int, dict[str, Any]]]:
        for index, rule in enumerate(self._get_rules()):
            if isinstance(rule, dict):
                yield index, rule

    def _get_rules(self) -> list[dict[str, Any]]:
        rules = self.app.config_state.section("rules")
        if isinstance(rules, list):
            return rules
        return []

    def _set_rules(self, rules: list[dict[str, Any]]) -> None:
        self.app.update_config_section("rules", rules)

    def _update_action_state(self) -> None:
        has_selection = self._current_row_key is not None
        self.query_one("#delete-rule", Button).disabled = not has_selection
        self.query_one("#duplicate-rule", Button).disabled = not has_selection

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        self._current_row_key = self._coerce_row_key(event.row_key)
        self._set_form_state(self._current_row_key)
        self._update_action_state()

    def _update_field(
        self,
        field: str,
        value: Any,
        default: Any = None,
        column_key: Optional[str] = None,
    ) -> None:
        if self._loading_form:
            return
        index = self._current_index()
        rules = self._get_rules()
        if index is None or index >= len(rules):
            return
        # Filling the form posts Changed events too; those must not mark dirty.
        if rules[index].get(field, default) == value:
            return
        rules[index][field] = value
        self._set_rules(rules)
        if column_key is not None:
            self._update_table_cell(index, column_key, value)
        self._show_rule_errors(rules[index])

    @on(Input.Changed, "#rule-name")
    def _on_name_changed(self, event: Input.Changed) -> None:
        self._update_field("name", event.value, "", column_key="name")

    @on(Switch.Changed, "#rule-enabled")
    def _on_enabled_changed(self, event: Switch.Changed) -> None:
        enabled = bool(event.value)
        self._update_field("enabled", enabled, True)
        index = self._current_index()
        if not self._loading_form and index is not None:
            self._update_table_cell(index, "enabled", "yes" if enabled else "no")

    @on(Input.Changed, "#rule-pattern")
    def _on_pattern_changed(self, event: Input.Changed) -> None:
        self._update_field("pattern", event.value, "", column_key="pattern")

    @on(TextArea.Changed, "#rule-command")
    def _on_command_changed(self, event: TextArea.Changed) -> None:
        self._update_field("command", split_lines(event.text_area.text), [])

    @on(TextArea.Changed, "#rule-env")
    def _on_env_changed(self, event: TextArea.Changed) -> None:
        self._update_field("env", split_lines(event.text_area.text), [])

    @on(Input.Changed, "#rule-working-dir")
    def _on_working_dir_changed(self, event: Input.Changed) -> None:
        self._update_field("working_dir", event.value.strip(), "")

    @on(Switch.Changed, "#rule-use-stdin")
    def _on_use_stdin_changed(self, event: Switch.Changed) -> None:
        self._update_field("use_stdin", bool(event.value), False)

    @on(Button.Pressed, "#add-rule")
    def _on_add_rule(self) -> None:
        rules = self._get_rules()
        rules.append(self._new_rule())
        self._set_rules(rules)
        self.reload_from_config()
        self._select_row(len(rules) - 1)

    @on(Button.Pressed, "#duplicate-rule")
    def _on_duplicate_rule(self) -> None:
        index = self._current_index()
        rules = self._get_rules()
        if index is None or index >= len(rules):
            return
        rule = dict(rules[index])
        rule["name"] = f"{rule.get('name') or 'Rule'} (copy)"
        rules.append(rule)
        self._set_rules(rules)
        self.reload_from_config()
        self._select_row(len(rules) - 1)

    @on(Button.Pressed, "#delete-rule")
    def _on_delete_rule(self) -> None:
        index = self._current_index()
        rules = self._get_rules()
        if index is None or index >= len(rules):
            return
        self.app.push_screen(delete_rule_screen(rules[index].get("name", "")), self._handle_delete_rule)

    def _handle_delete_rule(self, choice: str | None) -> None:
        if choice != "delete":
            return
        index = self._current_index()
        rules = self._get_rules()
        if index is None or index >= len(rules):
            return
        rules.pop(index)
        self._set_rules(rules)
        self.reload_from_config()

    @on(Button.Pressed, "#rule-test")
    def _on_test_rule(self) -> None:
        test_text = self.query_one("#rule-test-text", TextArea).text
        result = self.query_one("#rule-test-result", Static)
        result.update(describe_test(test_text, self._get_rules()))

    def _show_rule_errors(self, rule: dict[str, Any]) -> None:
        errors = validate_rule(rule)
        text = "\n".join(f"{error.field}: {error.message}" for error in errors)
        self.query_one("#rule-errors", Static).update(text)

    def _set_form_state(self, row_key: Optional[str]) -> None:
        self._loading_form = True
        name_input = self.query_one("#rule-name", Input)
        enabled_toggle = self.query_one("#rule-enabled", Switch)
        pattern_input = self.query_one("#rule-pattern", Input)
        command_input = self.query_one("#rule-command", TextArea)
        env_input = self.query_one("#rule-env", TextArea)
        working_dir_input = self.query_one("#rule-working-dir", Input)
        stdin_toggle = self.query_one("#rule-use-stdin", Switch)
        widgets = [
            name_input,
            enabled_toggle,
            pattern_input,
            command_input,
            env_input,
            working_dir_input,
            stdin_toggle,
        ]

        rules = self._get_rules()
        index = int(row_key) if row_key is not None else None
        if index is None or index >= len(rules):
            rule: dict[str, Any] = {}
            for widget in widgets:
                widget.disabled = True
            self.query_one("#rule-errors", Static).update("")
        else:
            rule = rules[index]
            for widget in widgets:
                widget.disabled = False
            self._show_rule_errors(rule)

        name_input.value = rule.get("name", "")
        enabled_toggle.value = bool(rule.get("enabled", bool(rule)))
        pattern_input.value = rule.get("pattern", "")
        command_input.text = "\n".join(rule.get("command", []) or [])
        env_input.text = "\n".join(rule.get("env", []) or [])
        working_dir_input.value = rule.get("working_dir", "") or ""
        stdin_toggle.value = bool(rule.get("use_stdin", False))
        self._loading_form = False

    def _select_row(self, index: int) -> None:
        table = self.query_one("#rules-table", DataTable)
        try:
            table.move_cursor(row=index)
        except Exception:
            return
        self._current_row_key = str(index)
        self._set_form_state(self._current_row_key)
        self._update_action_state()

    def _update_table_cell(self, index: int, column_key: str, value: Any) -> None:
        table = self.query_one("#rules-table", DataTable)
        row_key = str(index)
        try:
            table.update_cell(row_key, column_key, value)
        except Exception:
            self.reload_from_config()

    def _current_index(self) -> Optional[int]:
        if self._current_row_key is None:
            return None
        try:
            return int(self._current_row_key)
        except ValueError:
            return None

    @staticmethod
    def _coerce_row_key(value: Any) -> str:
        if hasattr(value, "value"):
            return str(value.value)
        return str(value)

    @staticmethod
    def _new_rule() -> dict[str, Any]:
        return {
            "name": "New rule",
            "pattern": "^/new",
            "command": ["echo"],
            "env": [],
            "working_dir": "",
            "use_stdin": False,
            "enabled": True,
        }


def describe_test(test_text: str, rules_config: list[dict[str, Any]]) -> str:
    """Explain which enabled rule a message would trigger, and how."""

    if not test_text.strip():
        return "Add test text to run."
    compiled = []
    for index, rule in enumerate(rules_config):
        if not isinstance(rule, dict) or not rule.get("enabled", True):
            continue
        try:
            compiled.append(compile_rule(index, rule))
        except ConfigError as exc:
            return f"Fix the rules first: {exc}"
    if not compiled:
        return "No enabled rules configured."

    rule = match_rule(test_text, compiled)
    if rule is None:
        return "Not matched; the message would be ignored."
    message = InboundMessage(text=test_text, conversation_id=0, sender_id=None, message_id=0)
    invocation = build_invocation(rule, message, base_environment=[])
    lines = [
        f"Matched: {rule.name or '(unnamed rule)'}",
        f"Runs: {shlex.join(invocation.argv)}",
        f"In: {invocation.working_directory}",
    ]
    if invocation.stdin is not None:
        lines.append("Message text goes to stdin")
    return "\n".join(lines)
