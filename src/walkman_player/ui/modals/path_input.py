"""Prompt for a music file or folder to add."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label


class PathInputModal(ModalScreen[str | None]):
    """Dismisses with the entered path, or None when cancelled/blank."""

    BINDINGS = [("escape", "cancel", "Cancel")]

    def __init__(self, title: str, *, placeholder: str = "") -> None:
        super().__init__()
        self._title = title
        self._placeholder = placeholder

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(self._title),
            Input(placeholder=self._placeholder, id="path-input"),
            Horizontal(
                Button("Add", id="ok"),
                Button("Cancel", id="cancel"),
            ),
            id="modal-body",
        )

    def on_mount(self) -> None:
        self.query_one("#path-input", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "ok":
            self.action_submit()
        else:
            self.action_cancel()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.action_submit()

    def action_submit(self) -> None:
        value = self.query_one("#path-input", Input).value.strip()
        # Shells and file managers often paste quoted paths.
        self.dismiss(value.strip("\"'") or None)

    def action_cancel(self) -> None:
        self.dismiss(None)
