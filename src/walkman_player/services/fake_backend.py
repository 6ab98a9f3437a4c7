"""Fake playback backend for deterministic testing and offline demos."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass

from .playback_backend import (
    BackendEvent,
    BackendStatus,
    MediaChanged,
    MediaEnded,
    PlaybackStartError,
    PositionUpdated,
    StateChanged,
)

_SPECTRUM_BINS = 32


@dataclass
class _PlaybackState:
    status: BackendStatus = "idle"
    source: str | None = None
    position_ms: int = 0
    duration_ms: int = 0
    volume: float = 1.0


class FakePlaybackBackend:
    """In-memory backend that simulates a media element's clock.

    `output_suspended` models an audio output that needs an explicit resume
    before sound is audible; `play_error` makes the next `play()` calls fail
    the way an autoplay policy block would.
    """

    def __init__(
        self,
        *,
        tick_interval_ms: int = 250,
        default_duration_ms: int = 180_000,
        durations: Mapping[str, int] | None = None,
        output_suspended: bool = True,
    ) -> None:
        self._tick_interval_ms = tick_interval_ms
        self._default_duration_ms = default_duration_ms
        self._durations = dict(durations or {})
        self._state = _PlaybackState()
        self._handler: Callable[[BackendEvent], Awaitable[None]] | None = None
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.output_suspended = output_suspended
        self.resume_calls = 0
        self.play_error: str | None = None
        self.released: list[str] = []

    def set_event_handler(
        self, handler: Callable[[BackendEvent], Awaitable[None]]
    ) -> None:
        self._handler = handler

    @property
    def source(self) -> str | None:
        return self._state.source

    @property
    def volume(self) -> float:
        return self._state.volume

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._ticker_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def load(self, source: str) -> None:
        duration = self._durations.get(source, self._default_duration_ms)
        async with self._lock:
            self._state.source = source
            self._state.position_ms = 0
            self._state.duration_ms = duration
            self._state.status = "ready"
        await self._emit(StateChanged("ready"))
        await self._emit(MediaChanged(duration, source))
        await self._emit(PositionUpdated(0, duration, source))

    async def unload(self) -> None:
        async with self._lock:
            self._state.source = None
            self._state.position_ms = 0
            self._state.duration_ms = 0
            self._state.status = "idle"
        await self._emit(StateChanged("idle"))

    async def release(self, source: str) -> None:
        self.released.append(source)

    async def resume_output(self) -> None:
        self.resume_calls += 1
        self.output_suspended = False

    async def play(self) -> None:
        async with self._lock:
            if self._state.source is None:
                raise PlaybackStartError("No media loaded.")
            if self.play_error is not None:
                raise PlaybackStartError(self.play_error)
            if self.output_suspended:
                raise PlaybackStartError("Audio output is suspended.")
            if self._state.status == "ended":
                self._state.position_ms = 0
            self._state.status = "playing"
        await self._emit(StateChanged("playing"))

    async def pause(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.status = "paused"
        await self._emit(StateChanged("paused"))

    async def seek_ms(self, position_ms: int) -> None:
        async with self._lock:
            pos = _clamp(position_ms, 0, self._state.duration_ms)
            self._state.position_ms = pos
            duration = self._state.duration_ms
            source = self._state.source
        await self._emit(PositionUpdated(pos, duration, source))

    async def set_volume(self, volume: float) -> None:
        async with self._lock:
            self._state.volume = max(0.0, min(1.0, float(volume)))

    async def get_position_ms(self) -> int:
        async with self._lock:
            return self._state.position_ms

    async def get_duration_ms(self) -> int:
        async with self._lock:
            return self._state.duration_ms

    async def get_state(self) -> BackendStatus:
        async with self._lock:
            return self._state.status

    async def get_frequency_data(self) -> bytes | None:
        """Synthetic spectrum that drifts with the media clock."""
        async with self._lock:
            if self._state.status != "playing":
                return None
            phase = self._state.position_ms / 1000.0
            gain = self._state.volume
        out = bytearray(_SPECTRUM_BINS)
        for idx in range(_SPECTRUM_BINS):
            falloff = 1.0 - (idx / _SPECTRUM_BINS)
            wobble = 0.5 + 0.5 * math.sin(phase * 3.0 + idx * 0.7)
            out[idx] = int(255 * gain * falloff * (0.35 + 0.65 * wobble))
        return bytes(out)

    async def finish_media(self) -> None:
        """Jump to the end of the playing media as if it played out."""
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.position_ms = self._state.duration_ms
        await self._tick(force_end=True)

    async def _ticker_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await asyncio.sleep(self._tick_interval_ms / 1000)
                await self._tick()
        except asyncio.CancelledError:
            pass

    async def _tick(self, *, force_end: bool = False) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            duration = self._state.duration_ms
            if duration <= 0:
                return
            next_pos = self._state.position_ms
            if not force_end:
                next_pos += self._tick_interval_ms
            ended = next_pos >= duration
            if ended:
                next_pos = duration
                self._state.status = "ended"
            self._state.position_ms = next_pos
            source = self._state.source
        await self._emit(PositionUpdated(next_pos, duration, source))
        if ended:
            await self._emit(StateChanged("ended"))
            await self._emit(MediaEnded(source))

    async def _emit(self, event: BackendEvent) -> None:
        if self._handler is None:
            return
        await self._handler(event)


def _clamp(value: int, min_value: int, max_value: int) -> int:
    return max(min_value, min(value, max_value))
