"""Transport status pane: time, progress, volume, remote link."""

from __future__ import annotations

from rich.text import Text
from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import Static

from walkman_player.events import ConnectionState
from walkman_player.services.command_dispatcher import RemoteCommand
from walkman_player.services.transport_engine import PlayerState
from walkman_player.utils.time_format import format_time_s, progress_ratio

BAR_WIDTH = 30
CONNECTION_LABELS: dict[str, tuple[str, str]] = {
    "connected": ("CONNECTED", "bold #27AE60"),
    "connecting": ("CONNECTING", "bold #F2C94C"),
    "disconnected": ("OFFLINE", "bold #FF5A36"),
}


def render_progress(state: PlayerState, width: int = BAR_WIDTH) -> Text:
    ratio = progress_ratio(state.position_s, state.duration_s)
    filled = int(round(ratio * width))
    text = Text()
    text.append("▶ " if state.is_playing else "❚❚ ", style="bold")
    text.append(format_time_s(state.position_s))
    text.append(" [")
    text.append("━" * filled, style="#56CCF2")
    text.append("─" * (width - filled), style="dim")
    text.append("] ")
    text.append(format_time_s(state.duration_s))
    return text


def render_status_line(
    state: PlayerState,
    connection: ConnectionState | None,
    last_command: RemoteCommand | None,
) -> Text:
    text = Text()
    text.append("Vol: ", style="bold #F2C94C")
    text.append(f"{int(round(state.volume * 100))}%")
    text.append(" | ")
    text.append("Remote: ", style="bold #F2C94C")
    if connection is None:
        text.append("disabled", style="dim")
    else:
        label, style = CONNECTION_LABELS[connection]
        text.append(label, style=style)
    text.append(" | ")
    text.append("Last command: ", style="bold #F2C94C")
    text.append(last_command.kind if last_command is not None else "-")
    return text


class StatusPane(Widget):
    DEFAULT_CSS = """
    StatusPane {
        layout: vertical;
    }

    #progress-line, #status-line {
        height: 1;
        overflow: hidden;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._progress_line = Static("", id="progress-line")
        self._status_line = Static("", id="status-line")
        self._state = PlayerState()
        self._connection: ConnectionState | None = None
        self._last_command: RemoteCommand | None = None

    def compose(self) -> ComposeResult:
        yield self._progress_line
        yield self._status_line

    def on_mount(self) -> None:
        self._refresh_lines()

    def update_state(self, state: PlayerState) -> None:
        self._state = state
        self._refresh_lines()

    def set_connection(self, connection: ConnectionState | None) -> None:
        self._connection = connection
        self._refresh_lines()

    def set_last_command(self, command: RemoteCommand) -> None:
        self._last_command = command
        self._refresh_lines()

    def _refresh_lines(self) -> None:
        self._progress_line.update(render_progress(self._state))
        self._status_line.update(
            render_status_line(self._state, self._connection, self._last_command)
        )
