"""Transport engine: the single writer of player state.

`TransportEngine` owns the one loaded media resource, applies local and remote
transport operations, folds backend media events into `PlayerState`, and posts
every effective change on the event bus. The playlist itself stays in
`PlaylistStore`; the engine only tracks an index into it.

Every transport operation is a silent no-op while the playlist is empty.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Iterable
from contextlib import suppress
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal

from walkman_player.events import (
    EventBus,
    MetadataLoaded,
    PlayerStateChanged,
    PlaylistChanged,
    PositionChanged,
    TrackChanged,
    TrackEnded,
)
from walkman_player.services.playback_backend import (
    BackendError,
    BackendEvent,
    MediaChanged,
    MediaEnded,
    PlaybackBackend,
    PlaybackStartError,
    PositionUpdated,
)
from walkman_player.services.playlist_store import (
    IngestEntry,
    PlaylistStore,
    Track,
    tracks_from_entries,
)
from walkman_player.state_store import DEFAULT_VOLUME

logger = logging.getLogger(__name__)

Direction = Literal["next", "previous"]
NO_SONG_NAME = "No Song"
POSITION_EMIT_THRESHOLD_S = 0.1


@dataclass(frozen=True)
class PlayerState:
    """Authoritative transport state; replaced wholesale on every change."""

    current_index: int | None = None
    is_playing: bool = False
    position_s: float = 0.0
    duration_s: float = 0.0
    volume: float = DEFAULT_VOLUME


@dataclass(frozen=True)
class OutboundSnapshot:
    """Read-only projection of player state sent to the remote relay."""

    song_name: str
    is_playing: bool
    current_time: int
    duration: int
    track_number: int
    total_tracks: int

    @classmethod
    def from_state(
        cls, state: PlayerState, track: Track | None, total_tracks: int
    ) -> OutboundSnapshot:
        return cls(
            song_name=track.name if track is not None else NO_SONG_NAME,
            is_playing=state.is_playing,
            current_time=_whole_seconds(state.position_s),
            duration=_whole_seconds(state.duration_s),
            track_number=(state.current_index or 0) + 1,
            total_tracks=total_tracks,
        )

    def to_payload(self) -> dict[str, object]:
        """Wire form of the `songInfo` event."""
        return {
            "songName": self.song_name,
            "isPlaying": self.is_playing,
            "currentTime": self.current_time,
            "duration": self.duration,
            "trackNumber": self.track_number,
            "totalTracks": self.total_tracks,
        }


def step_index(index: int | None, count: int, direction: Direction) -> int:
    """Move circularly through `count` items; wraps at both ends."""
    if count <= 0:
        raise ValueError("count must be positive")
    if index is None:
        return 0 if direction == "next" else count - 1
    delta = 1 if direction == "next" else -1
    return (index + delta) % count


class TransportEngine:
    """Owns playback state and posts events to bus subscribers."""

    def __init__(
        self,
        *,
        bus: EventBus,
        backend: PlaybackBackend,
        playlist: PlaylistStore,
        initial_volume: float = DEFAULT_VOLUME,
    ) -> None:
        self._bus = bus
        self._backend = backend
        self._playlist = playlist
        self._state = PlayerState(volume=_clamp_unit(initial_volume))
        self._lock = asyncio.Lock()
        self._loaded: Track | None = None
        # Bumped on every load; end-of-track is handled at most once per value.
        self._generation = 0
        self._ended_generation: int | None = None
        self._loading = False
        self._backend.set_event_handler(self._handle_backend_event)

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def playlist(self) -> tuple[Track, ...]:
        return self._playlist.tracks

    @property
    def current_track(self) -> Track | None:
        return self._playlist.get(self._state.current_index)

    def snapshot(self) -> OutboundSnapshot:
        return OutboundSnapshot.from_state(
            self._state, self.current_track, len(self._playlist)
        )

    async def start(self) -> None:
        """Start the backend, restore the persisted playlist, bind track 0."""
        await self._backend.start()
        await self._backend.set_volume(self._state.volume)
        tracks = await self._playlist.load()
        loaded = False
        async with self._lock:
            if tracks:
                loaded = await self._load_locked(0)
        await self._bus.publish(PlaylistChanged(self._playlist.tracks))
        if loaded:
            await self._emit_track()
        await self._emit_state()

    async def shutdown(self) -> None:
        """Best-effort backend shutdown."""
        with suppress(Exception):
            await self._backend.shutdown()

    async def load(self, track: Track | None) -> None:
        """Bind `track` (must be in the playlist); position resets, no autostart."""
        if track is None:
            return
        async with self._lock:
            index = self._playlist.index_of(track.id)
            if index is None:
                return
            loaded = await self._load_locked(index)
        if loaded:
            await self._emit_track()
            await self._emit_state()

    async def play(self) -> None:
        async with self._lock:
            changed = await self._play_locked()
        if changed:
            await self._emit_state()

    async def pause(self) -> None:
        async with self._lock:
            changed = await self._pause_locked()
        if changed:
            await self._emit_state()

    async def toggle(self) -> None:
        """Local play/pause button."""
        async with self._lock:
            if self._state.is_playing:
                changed = await self._pause_locked()
            else:
                changed = await self._play_locked()
        if changed:
            await self._emit_state()

    async def seek(self, position_s: float) -> None:
        async with self._lock:
            if self._loaded is None or not self._playlist:
                return
            target = _clamp(_finite(position_s), 0.0, self._state.duration_s)
            try:
                await self._backend.seek_ms(int(target * 1000))
            except Exception:
                logger.exception("Seek failed")
                return
            self._state = replace(self._state, position_s=target)
        await self._emit_state()

    async def seek_relative(self, delta_s: float) -> None:
        await self.seek(self._state.position_s + delta_s)

    async def set_volume(self, volume: float) -> None:
        async with self._lock:
            if not self._playlist:
                return
            level = _clamp_unit(volume)
            try:
                await self._backend.set_volume(level)
            except Exception:
                logger.exception("Volume change failed")
                return
            self._state = replace(self._state, volume=level)
        await self._emit_state()

    async def advance(self, direction: Direction) -> None:
        """Move to the neighbouring track, resuming playback if it was playing."""
        async with self._lock:
            count = len(self._playlist)
            if count == 0:
                return
            target = step_index(self._state.current_index, count, direction)
            await self._switch_locked(target)
        await self._emit_track()
        await self._emit_state()

    async def select(self, index: int) -> None:
        """Jump to a playlist row, preserving play/pause like `advance`."""
        async with self._lock:
            if not 0 <= index < len(self._playlist):
                return
            await self._switch_locked(index)
        await self._emit_track()
        await self._emit_state()

    async def add_tracks(self, entries: Iterable[IngestEntry | str | Path]) -> int:
        """Ingest files; non-audio entries are skipped. Returns tracks added."""
        candidates = tracks_from_entries(entries)
        if not candidates:
            return 0
        async with self._lock:
            was_empty = len(self._playlist) == 0
            added = await self._playlist.append(candidates)
            reset = was_empty and bool(added)
            if reset:
                self._state = replace(
                    self._state, current_index=0, is_playing=False, position_s=0.0
                )
                await self._load_locked(0)
        if added:
            logger.info("Added %d tracks to playlist", len(added))
            await self._bus.publish(PlaylistChanged(self._playlist.tracks))
            if reset:
                await self._emit_track()
            await self._emit_state()
        return len(added)

    async def remove_track(self, track_id: str) -> bool:
        """Remove a track, release its resources, and fix up the current index."""
        track_changed = False
        async with self._lock:
            result = await self._playlist.remove(track_id)
            if result is None:
                return False
            removed_index, removed = result
            current = self._state.current_index
            try:
                await self._backend.release(removed.source)
            except Exception:
                logger.exception("Failed to release track resources")
            if not self._playlist:
                await self._unload_locked()
                track_changed = True
            elif removed_index == current:
                await self._switch_locked(0)
                track_changed = True
            elif current is not None and removed_index < current:
                self._state = replace(self._state, current_index=current - 1)
        logger.info("Removed track %s", removed.name, extra={"track_id": track_id})
        await self._bus.publish(PlaylistChanged(self._playlist.tracks))
        if track_changed:
            await self._emit_track()
        await self._emit_state()
        return True

    async def _switch_locked(self, index: int) -> None:
        was_playing = self._state.is_playing
        await self._load_locked(index)
        if was_playing:
            await self._play_locked()

    async def _load_locked(self, index: int) -> bool:
        track = self._playlist.get(index)
        if track is None:
            return False
        self._generation += 1
        self._loaded = track
        self._state = replace(
            self._state,
            current_index=index,
            is_playing=False,
            position_s=0.0,
            duration_s=0.0,
        )
        self._loading = True
        try:
            await self._backend.load(track.source)
        except Exception:
            logger.exception("Failed to load track %s", track.name)
            self._loaded = None
        finally:
            self._loading = False
        return True

    async def _unload_locked(self) -> None:
        self._generation += 1
        self._loaded = None
        self._state = PlayerState(volume=self._state.volume)
        try:
            await self._backend.unload()
        except Exception:
            logger.exception("Failed to unload media")

    async def _play_locked(self) -> bool:
        if self._state.is_playing or self._loaded is None or not self._playlist:
            return False
        try:
            # Output may be suspended until explicitly resumed.
            await self._backend.resume_output()
            await self._backend.play()
        except PlaybackStartError as exc:
            logger.warning(
                "Playback start blocked: %s",
                exc,
                extra={"track_id": self._loaded.id},
            )
            return False
        except Exception:
            logger.exception("Playback start failed")
            return False
        self._state = replace(self._state, is_playing=True)
        return True

    async def _pause_locked(self) -> bool:
        if not self._state.is_playing:
            return False
        try:
            await self._backend.pause()
        except Exception:
            logger.exception("Pause failed")
            return False
        self._state = replace(self._state, is_playing=False)
        return True

    async def _handle_backend_event(self, event: BackendEvent) -> None:
        """Fold backend media events into state.

        Backends must not emit `MediaEnded` from inside a command call; it
        re-enters the engine lock through `advance`.
        """
        if isinstance(event, PositionUpdated):
            await self._on_position(event)
        elif isinstance(event, MediaChanged):
            if self._is_bound(event.source):
                await self._on_duration(event.duration_ms)
        elif isinstance(event, MediaEnded):
            await self._on_media_ended(event)
        elif isinstance(event, BackendError):
            logger.warning("Playback backend error: %s", event.message)
            if self._state.is_playing:
                self._state = replace(self._state, is_playing=False)
                await self._emit_state()

    async def _on_position(self, event: PositionUpdated) -> None:
        if not self._is_bound(event.source):
            return
        if event.duration_ms > 0:
            await self._on_duration(event.duration_ms)
        position = max(0, event.position_ms) / 1000.0
        if self._state.duration_s > 0:
            position = min(position, self._state.duration_s)
        delta = abs(position - self._state.position_s)
        if delta < POSITION_EMIT_THRESHOLD_S and position != 0.0:
            return
        if position == self._state.position_s:
            return
        self._state = replace(self._state, position_s=position)
        await self._bus.publish(PositionChanged(position))
        await self._emit_state_unless_busy()

    async def _on_duration(self, duration_ms: int) -> None:
        duration = max(0, duration_ms) / 1000.0
        if duration == self._state.duration_s:
            return
        self._state = replace(self._state, duration_s=duration)
        await self._bus.publish(MetadataLoaded(duration))
        await self._emit_state_unless_busy()

    def _is_bound(self, source: str | None) -> bool:
        """Whether a clock or duration report belongs to the loaded track."""
        if self._loaded is None:
            return False
        if source is not None:
            return source == self._loaded.source
        # Unstamped reports queued before a load describe the previous media.
        return not self._loading

    async def _on_media_ended(self, event: MediaEnded) -> None:
        async with self._lock:
            track = self._loaded
            if track is None or not self._state.is_playing:
                return
            if event.source is not None and event.source != track.source:
                return
            if self._ended_generation == self._generation:
                return
            self._ended_generation = self._generation
        logger.debug("Track ended", extra={"track_id": track.id})
        await self._bus.publish(TrackEnded(track.id))
        await self.advance("next")

    async def _emit_state(self) -> None:
        await self._bus.publish(PlayerStateChanged(self._state, len(self._playlist)))

    async def _emit_state_unless_busy(self) -> None:
        # A running operation publishes the settled state when it finishes.
        if not self._lock.locked():
            await self._emit_state()

    async def _emit_track(self) -> None:
        await self._bus.publish(
            TrackChanged(self.current_track, self._state.current_index)
        )


def _whole_seconds(value: float) -> int:
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(math.floor(value))


def _finite(value: float) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    return numeric if math.isfinite(numeric) else 0.0


def _clamp(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(value, max_value))


def _clamp_unit(value: float) -> float:
    return _clamp(_finite(value), 0.0, 1.0)
