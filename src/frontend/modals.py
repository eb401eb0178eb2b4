"""Modal dialogs for the Textual config panel."""

from __future__ import annotations

from typing import Sequence

from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.widgets import Button, Static

# (choice, label, button variant)
Choice = tuple[str, str, str]


class ConfirmScreen(ModalScreen[str]):
    """Ask a question and dismiss with the id of the chosen button.

    Escape or any unknown button dismisses with "cancel".
    """

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, body: str, choices: Sequence[Choice]) -> None:
        super().__init__()
        self._title = title
        self._body = body
        self._choices = list(choices)

    def compose(self) -> ComposeResult:
        buttons = [
            Button(label, id=f"choice-{choice}", variant=variant)
            for choice, label, variant in self._choices
        ]
        buttons.append(Button("Cancel", id="choice-cancel"))
        yield Container(
            Static(self._title, classes="modal-title"),
            Static(self._body, classes="modal-body"),
            Horizontal(*buttons, classes="modal-actions"),
            classes="modal-dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id or ""
        self.dismiss(button_id.removeprefix("choice-") or "cancel")

    def action_cancel(self) -> None:
        self.dismiss("cancel")


def unsaved_changes_screen() -> ConfirmScreen:
    return ConfirmScreen(
        "Unsaved changes",
        "Save changes before exit?",
        [("save", "Save", "success"), ("discard", "Discard", "error")],
    )


def reload_confirm_screen() -> ConfirmScreen:
    return ConfirmScreen(
        "Reload config?",
        "Unsaved changes will be lost.",
        [("save", "Save", "default"), ("reload", "Reload", "warning")],
    )


def delete_rule_screen(rule_name: str) -> ConfirmScreen:
    return ConfirmScreen(
        "Delete rule?",
        rule_name or "(unnamed rule)",
        [("delete", "Delete", "error")],
    )
