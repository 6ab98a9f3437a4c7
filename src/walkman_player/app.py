"""Textual TUI app for walkman-player."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Header, OptionList, Static

from .events import (
    ConnectionStateChanged,
    EventBus,
    PlayerStateChanged,
    PlaylistChanged,
    RemoteCommandReceived,
    SpectrumUpdated,
    TrackChanged,
)
from .media_formats import expand_audio_paths
from .paths import AppPaths, default_paths
from .runtime_config import (
    clamp_visualizer_fps,
    resolve_backend_name,
    resolve_relay_url,
)
from .services.command_dispatcher import CommandDispatcher
from .services.fake_backend import FakePlaybackBackend
from .services.playback_backend import PlaybackBackend
from .services.playlist_store import PlaylistStore
from .services.remote_channel import RemoteSyncChannel
from .services.transport_engine import TransportEngine
from .services.visualization_sampler import VisualizationSampler
from .services.vlc_backend import VLCPlaybackBackend
from .state_store import AppState, load_state, save_state
from .ui.modals.error import ErrorModal
from .ui.modals.path_input import PathInputModal
from .ui.playlist_pane import PlaylistPane
from .ui.spectrum_pane import SpectrumPane
from .ui.status_pane import StatusPane
from .utils.async_utils import run_blocking

logger = logging.getLogger(__name__)
SEEK_STEP_S = 5.0
VOLUME_STEP = 0.05
STATE_SAVE_DEBOUNCE = 1.0


class WalkmanApp(App):
    TITLE = "walkman-player"
    CSS = """
    Screen {
        layout: vertical;
    }

    #main {
        height: 1fr;
    }

    #playlist-pane {
        width: 1fr;
        min-width: 40%;
        border: solid white;
    }

    #right-pane {
        width: 1fr;
    }

    #spectrum-pane {
        border: solid white;
        height: 1fr;
        content-align: center bottom;
    }

    #now-playing {
        border: solid white;
        height: 5;
        content-align: center middle;
    }

    #status-pane {
        height: 4;
        border: solid white;
        padding: 0 1;
    }

    ModalScreen {
        align: center middle;
    }

    #modal-body {
        padding: 1 2;
        border: solid white;
        width: 60%;
        height: auto;
    }
    """
    BINDINGS = [
        ("space", "play_pause", "Play/Pause"),
        ("n", "next_track", "Next"),
        ("p", "previous_track", "Previous"),
        ("left", "seek_back", "Seek -5s"),
        ("right", "seek_forward", "Seek +5s"),
        ("-", "volume_down", "Vol -"),
        ("+", "volume_up", "Vol +"),
        ("a", "add_music", "Add music"),
        ("d", "remove_track", "Remove"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        *,
        paths: AppPaths | None = None,
        backend_name: str | None = None,
        relay_url: str | None = None,
        offline: bool = False,
        visualizer_fps: int | None = None,
        auto_init: bool = True,
    ) -> None:
        super().__init__()
        self._paths = paths
        self._backend_name = backend_name
        self._relay_url = relay_url
        self._offline = offline
        self._visualizer_fps = visualizer_fps
        self._auto_init = auto_init
        self.settings = AppState()
        self.bus = EventBus()
        self.engine: TransportEngine | None = None
        self.sampler: VisualizationSampler | None = None
        self.channel: RemoteSyncChannel | None = None
        self._state_save_task: asyncio.Task[None] | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            PlaylistPane(id="playlist-pane"),
            Vertical(
                SpectrumPane("", id="spectrum-pane"),
                Static("No Song", id="now-playing"),
                id="right-pane",
            ),
            id="main",
        )
        yield StatusPane(id="status-pane")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one(PlaylistPane).set_tracks(())
        if self._auto_init:
            asyncio.create_task(self._initialize())

    async def _initialize(self) -> None:
        try:
            paths = self._paths or await run_blocking(default_paths)
            self._paths = await run_blocking(paths.ensure)
            self.settings = await run_blocking(load_state, self._paths.state_file)
            backend_name = resolve_backend_name(
                self._backend_name, self.settings.playback_backend
            )
            fps = clamp_visualizer_fps(
                self._visualizer_fps
                if self._visualizer_fps is not None
                else self.settings.visualizer_fps
            )
            self.settings = replace(
                self.settings, playback_backend=backend_name, visualizer_fps=fps
            )
            await run_blocking(save_state, self._paths.state_file, self.settings)
            self._subscribe_ui()
            engine, backend = await self._start_engine(backend_name)
            dispatcher = CommandDispatcher(engine, self.bus)
            self.sampler = VisualizationSampler(self.bus, backend, fps=fps)
            self.sampler.attach()
            await self._start_channel(engine, dispatcher)
            self.query_one(PlaylistPane).focus()
        except Exception as exc:
            logger.exception("Failed to initialize app: %s", exc)
            await self.push_screen(
                ErrorModal(
                    "Failed to initialize app.\n"
                    "Likely cause: settings/playlist/backend startup failure.\n"
                    "Next step: verify file permissions and review the log file."
                )
            )

    async def _start_engine(
        self, backend_name: str
    ) -> tuple[TransportEngine, PlaybackBackend]:
        assert self._paths is not None
        backend = _build_backend(backend_name)
        engine = self._build_engine(backend)
        try:
            await engine.start()
        except Exception as exc:
            if backend_name == "fake":
                raise
            logger.exception("Failed to start backend %s: %s", backend_name, exc)
            backend_name = "fake"
            self.settings = replace(self.settings, playback_backend=backend_name)
            await run_blocking(save_state, self._paths.state_file, self.settings)
            backend = _build_backend(backend_name)
            engine = self._build_engine(backend)
            await engine.start()
            await self.push_screen(
                ErrorModal(
                    "VLC backend unavailable; using fake backend.\n"
                    "Cause: VLC/libVLC runtime is not available.\n"
                    "Next step: install VLC/libVLC, then restart with --backend vlc."
                )
            )
        self.engine = engine
        return engine, backend

    def _build_engine(self, backend: PlaybackBackend) -> TransportEngine:
        assert self._paths is not None
        return TransportEngine(
            bus=self.bus,
            backend=backend,
            playlist=PlaylistStore(self._paths.playlist_file),
            initial_volume=self.settings.volume,
        )

    async def _start_channel(
        self, engine: TransportEngine, dispatcher: CommandDispatcher
    ) -> None:
        status = self.query_one(StatusPane)
        if self._offline or not self.settings.remote_enabled:
            logger.info("Remote sync disabled")
            status.set_connection(None)
            return
        url = resolve_relay_url(self._relay_url, self.settings.relay_url)
        self.channel = RemoteSyncChannel(
            url=url, bus=self.bus, engine=engine, dispatcher=dispatcher
        )
        status.set_connection(self.channel.state)
        await self.channel.start()

    def _subscribe_ui(self) -> None:
        self.bus.subscribe(PlayerStateChanged, self._on_player_state)
        self.bus.subscribe(TrackChanged, self._on_track_changed)
        self.bus.subscribe(PlaylistChanged, self._on_playlist_changed)
        self.bus.subscribe(ConnectionStateChanged, self._on_connection_state)
        self.bus.subscribe(RemoteCommandReceived, self._on_remote_command)
        self.bus.subscribe(SpectrumUpdated, self._on_spectrum)

    async def on_unmount(self) -> None:
        if self.channel is not None:
            await self.channel.close()
        if self.sampler is not None:
            await self.sampler.shutdown()
        if self.engine is not None:
            await self.engine.shutdown()
        self.bus.close()
        if self._state_save_task is not None:
            self._state_save_task.cancel()
            self._state_save_task = None
        if self._paths is not None:
            await run_blocking(save_state, self._paths.state_file, self.settings)

    async def action_play_pause(self) -> None:
        if self.engine is None:
            return
        await self.engine.toggle()

    async def action_next_track(self) -> None:
        if self.engine is None:
            return
        await self.engine.advance("next")

    async def action_previous_track(self) -> None:
        if self.engine is None:
            return
        await self.engine.advance("previous")

    async def action_seek_back(self) -> None:
        if self.engine is None:
            return
        await self.engine.seek_relative(-SEEK_STEP_S)

    async def action_seek_forward(self) -> None:
        if self.engine is None:
            return
        await self.engine.seek_relative(SEEK_STEP_S)

    async def action_volume_down(self) -> None:
        if self.engine is None:
            return
        await self.engine.set_volume(self.engine.state.volume - VOLUME_STEP)

    async def action_volume_up(self) -> None:
        if self.engine is None:
            return
        await self.engine.set_volume(self.engine.state.volume + VOLUME_STEP)

    def action_add_music(self) -> None:
        if self.engine is None:
            return
        self.push_screen(
            PathInputModal("Add music (file or folder)", placeholder="~/Music"),
            self._add_music_from,
        )

    async def action_remove_track(self) -> None:
        if self.engine is None:
            return
        track = self.query_one(PlaylistPane).highlighted_track()
        if track is None:
            return
        await self.engine.remove_track(track.id)

    async def action_quit(self) -> None:
        self.exit()

    async def on_option_list_option_selected(
        self, event: OptionList.OptionSelected
    ) -> None:
        if self.engine is None:
            return
        await self.engine.select(event.option_index)

    async def _add_music_from(self, raw_path: str | None) -> None:
        if raw_path is None or self.engine is None:
            return
        path = Path(raw_path).expanduser()
        files = await run_blocking(expand_audio_paths, path)
        if not files:
            await self.push_screen(ErrorModal(f"No audio files found at:\n{path}"))
            return
        added = await self.engine.add_tracks(files)
        self.notify(f"Added {added} track(s)")

    async def _on_player_state(self, event: PlayerStateChanged) -> None:
        state = event.state
        self.query_one(StatusPane).update_state(state)
        self.query_one(PlaylistPane).set_current(state.current_index, state.is_playing)
        if state.volume != self.settings.volume:
            self.settings = replace(self.settings, volume=state.volume)
            self._schedule_state_save()

    async def _on_track_changed(self, event: TrackChanged) -> None:
        pane = self.query_one("#now-playing", Static)
        if event.track is None:
            pane.update("No Song")
            return
        total = len(self.engine.playlist) if self.engine is not None else 0
        position = (event.index or 0) + 1
        pane.update(f"{event.track.name}\nTrack {position} of {total}")

    async def _on_playlist_changed(self, event: PlaylistChanged) -> None:
        self.query_one(PlaylistPane).set_tracks(event.tracks)
        if self.engine is not None:
            await self._on_track_changed(
                TrackChanged(self.engine.current_track, self.engine.state.current_index)
            )

    async def _on_connection_state(self, event: ConnectionStateChanged) -> None:
        self.query_one(StatusPane).set_connection(event.state)

    async def _on_remote_command(self, event: RemoteCommandReceived) -> None:
        self.query_one(StatusPane).set_last_command(event.command)

    async def _on_spectrum(self, event: SpectrumUpdated) -> None:
        self.query_one(SpectrumPane).show(event.amplitudes)

    def _schedule_state_save(self) -> None:
        if self._state_save_task is not None:
            self._state_save_task.cancel()
        self._state_save_task = asyncio.create_task(self._save_state_debounced())

    async def _save_state_debounced(self) -> None:
        try:
            await asyncio.sleep(STATE_SAVE_DEBOUNCE)
            if self._paths is not None:
                await run_blocking(save_state, self._paths.state_file, self.settings)
        except asyncio.CancelledError:
            return


def _build_backend(name: str) -> FakePlaybackBackend | VLCPlaybackBackend:
    logger.info("Playback backend selected: %s", name)
    if name == "vlc":
        return VLCPlaybackBackend()
    return FakePlaybackBackend()
