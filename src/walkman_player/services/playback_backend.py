"""Playback backend contracts and event payloads.

`TransportEngine` depends on this protocol to stay backend-agnostic. A backend
plays the role of a media element: it is bound to one source at a time and
reports its clock, duration, and end-of-media back through `BackendEvent`s.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

BackendStatus = Literal["idle", "ready", "playing", "paused", "ended", "error"]


class PlaybackStartError(RuntimeError):
    """Playback could not start (output unavailable, media unplayable, policy)."""


@dataclass(frozen=True)
class BackendEvent:
    """Marker base type for backend-originated events."""

    pass


@dataclass(frozen=True)
class PositionUpdated(BackendEvent):
    """Media clock update in milliseconds.

    `source` names the media the clock belongs to; `None` means whatever is
    bound when the event is handled.
    """

    position_ms: int
    duration_ms: int
    source: str | None = None


@dataclass(frozen=True)
class MediaChanged(BackendEvent):
    """Duration of the bound media became known or changed."""

    duration_ms: int
    source: str | None = None


@dataclass(frozen=True)
class StateChanged(BackendEvent):
    """Backend playback state transition."""

    status: BackendStatus


@dataclass(frozen=True)
class MediaEnded(BackendEvent):
    """The bound media reached its end while playing."""

    source: str | None


@dataclass(frozen=True)
class BackendError(BackendEvent):
    """Backend-reported runtime error."""

    message: str


@runtime_checkable
class FrequencyDataProvider(Protocol):
    """Live signal tap: byte-scaled magnitudes of the audible signal."""

    async def get_frequency_data(self) -> bytes | None: ...


class PlaybackBackend(Protocol):
    """Playback engine protocol consumed by `TransportEngine`."""

    def set_event_handler(
        self, handler: Callable[[BackendEvent], Awaitable[None]]
    ) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def load(self, source: str) -> None: ...

    async def unload(self) -> None: ...

    async def release(self, source: str) -> None: ...

    async def resume_output(self) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek_ms(self, position_ms: int) -> None: ...

    async def set_volume(self, volume: float) -> None: ...

    async def get_position_ms(self) -> int: ...

    async def get_duration_ms(self) -> int: ...

    async def get_state(self) -> BackendStatus: ...
