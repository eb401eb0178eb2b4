"""Main Textual app for the telecmd config panel."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import Button, ContentSwitcher, Footer, Static, Tab, Tabs

from settings import CONFIG_PATH

from .modals import reload_confirm_screen, unsaved_changes_screen
from .state import ConfigState
from .tabs.rules import RulesTab
from .tabs.settings import SettingsTab

TELEGRAM_BLUE = "#2AABEE"


class ConfigPanelApp(App):
    """Config panel with global config state and tabs."""

    BINDINGS = [
        ("ctrl+s", "save_config", "Save"),
        ("ctrl+r", "reload_config", "Reload"),
        ("q", "request_quit", "Quit"),
        ("ctrl+c", "request_quit", "Quit"),
    ]

    CSS_PATH = "app.tcss"

    def __init__(self, config_path: Optional[Path] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.config_state = ConfigState(path=config_path or Path(CONFIG_PATH))

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static(f"file: {self.config_state.path.name}", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static("", id="header-status")
                    yield Horizontal(
                        Button("Save", id="save-btn"),
                        Button("Reload", id="reload-btn"),
                        id="header-actions",
                    )

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(
                    Tab("Rules", id="rules"),
                    Tab("Settings", id="settings"),
                    id="tabs",
                )

        with ContentSwitcher(id="content"):
            yield RulesTab(id="rules")
            yield SettingsTab(id="settings")
        yield Footer()

    def on_mount(self) -> None:
        self._load_config()
        self._set_active_tab("rules")

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        self._set_active_tab(event.tab.id or "rules")

    def _set_active_tab(self, tab_id: str) -> None:
        switcher = self.query_one("#content", ContentSwitcher)
        switcher.current = tab_id

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "save-btn":
            self.action_save_config()
        elif event.button.id == "reload-btn":
            self.action_reload_config()

    def action_save_config(self) -> None:
        self._save_config()

    def action_reload_config(self) -> None:
        if self.config_state.dirty:
            self.push_screen(reload_confirm_screen(), self._handle_reload_choice)
        else:
            self._load_config()

    def action_request_quit(self) -> None:
        if self.config_state.dirty:
            self.push_screen(unsaved_changes_screen(), self._handle_exit_choice)
        else:
            self.exit()

    def _handle_exit_choice(self, choice: str | None) -> None:
        if choice == "save":
            if self._save_config():
                self.exit()
        elif choice == "discard":
            self.exit()

    def _handle_reload_choice(self, choice: str | None) -> None:
        if choice == "save":
            if self._save_config():
                self._load_config()
        elif choice == "reload":
            self._load_config()

    def _load_config(self) -> None:
        self.config_state.load()
        self._refresh_header()
        for tab in (self.query_one(RulesTab), self.query_one(SettingsTab)):
            tab.reload_from_config()

    def _save_config(self) -> bool:
        saved = self.config_state.save()
        self._refresh_header()
        return saved

    def _refresh_header(self) -> None:
        status = self.query_one("#header-status", Static)
        save_btn = self.query_one("#save-btn", Button)

        status.remove_class("status-loaded", "status-modified", "status-error")
        if self.config_state.error:
            status.update(f"config: {self.config_state.error}")
            status.add_class("status-error")
        elif self.config_state.dirty:
            status.update("config: modified *")
            status.add_class("status-modified")
        else:
            status.update("config: loaded")
            status.add_class("status-loaded")

        save_btn.disabled = self.config_state.data is None or not self.config_state.dirty

    def update_config_section(self, section: str, value: Any) -> None:
        """Update a config section in memory and mark dirty."""
        self.config_state.update_section(section, value)
        self._refresh_header()

    def remove_config_section(self, section: str) -> None:
        self.config_state.remove_section(section)
        self._refresh_header()

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("TELE", TELEGRAM_BLUE),
            ("CMD > Config Panel", "bold"),
        )
