"""Playlist pane listing track names with the current track marked."""

from __future__ import annotations

from rich.text import Text
from textual.widgets import OptionList

from walkman_player.services.playlist_store import Track

EMPTY_HINT = "No music loaded. Press 'a' to add files."


def track_label(track: Track, index: int, *, current: bool, playing: bool) -> Text:
    marker = ("▶ " if playing else "❚❚ ") if current else "   "
    text = Text(marker)
    text.append(f"{index + 1:>3}. ", style="dim")
    text.append(track.name, style="bold" if current else "")
    return text


class PlaylistPane(OptionList):
    """Selecting a row asks the app to jump to that index."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._tracks: tuple[Track, ...] = ()
        self._current: int | None = None
        self._playing = False

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._tracks

    def set_tracks(self, tracks: tuple[Track, ...]) -> None:
        self._tracks = tracks
        self._rebuild()

    def set_current(self, index: int | None, playing: bool) -> None:
        if index == self._current and playing == self._playing:
            return
        self._current = index
        self._playing = playing
        self._rebuild()

    def highlighted_track(self) -> Track | None:
        index = self.highlighted
        if index is None or not 0 <= index < len(self._tracks):
            return None
        return self._tracks[index]

    def _rebuild(self) -> None:
        highlighted = self.highlighted
        self.clear_options()
        if not self._tracks:
            self.add_option(Text(EMPTY_HINT, style="dim"))
            self.disabled = True
            return
        self.disabled = False
        self.add_options(
            [
                track_label(
                    track,
                    idx,
                    current=idx == self._current,
                    playing=self._playing,
                )
                for idx, track in enumerate(self._tracks)
            ]
        )
        if highlighted is not None:
            self.highlighted = min(highlighted, len(self._tracks) - 1)
        elif self._current is not None:
            self.highlighted = self._current
