"""Internal event bus and the event types posted on it.

Backend media events, remote connection events, and sampler frames all flow
through one `EventBus`, so delivery order is the publish order and teardown is
a single `close()` instead of scattered callback deregistration.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeVar

if TYPE_CHECKING:
    from walkman_player.services.command_dispatcher import RemoteCommand
    from walkman_player.services.playlist_store import Track
    from walkman_player.services.transport_engine import PlayerState

logger = logging.getLogger(__name__)

ConnectionState = Literal["disconnected", "connecting", "connected"]
E = TypeVar("E")
Handler = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class PlayerStateChanged:
    """Emitted after every effective transport state change."""

    state: PlayerState
    track_count: int


@dataclass(frozen=True)
class TrackChanged:
    """Emitted when the loaded track changes (or is unloaded)."""

    track: Track | None
    index: int | None


@dataclass(frozen=True)
class PositionChanged:
    """Media clock tick from the playback backend, in seconds."""

    position_s: float


@dataclass(frozen=True)
class MetadataLoaded:
    """Duration of the loaded media became known."""

    duration_s: float


@dataclass(frozen=True)
class TrackEnded:
    """The loaded track played to its end."""

    track_id: str | None


@dataclass(frozen=True)
class PlaylistChanged:
    """Playlist contents changed (ingestion or removal)."""

    tracks: tuple[Track, ...]


@dataclass(frozen=True)
class RemoteCommandReceived:
    """A remote command was accepted for dispatch (UI feedback only)."""

    command: RemoteCommand
    raw: str


@dataclass(frozen=True)
class ConnectionStateChanged:
    """Remote relay connection state transition."""

    state: ConnectionState


@dataclass(frozen=True)
class SpectrumUpdated:
    """New normalized amplitude frame from the visualization sampler."""

    amplitudes: tuple[float, ...]


class EventBus:
    """Ordered async publish/subscribe keyed by event type.

    Handlers run sequentially in subscription order. A failing handler is
    logged and does not prevent delivery to the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(
        self, event_type: type[E], handler: Callable[[E], Awaitable[None]]
    ) -> Callable[[], None]:
        """Register `handler` for `event_type`; returns an unsubscribe callable."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            current = self._handlers.get(event_type)
            if current is not None and handler in current:
                current.remove(handler)

        return unsubscribe

    async def publish(self, event: object) -> None:
        if self._closed:
            return
        for handler in list(self._handlers.get(type(event), ())):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "Event handler failed",
                    extra={"event_type": type(event).__name__},
                )

    def close(self) -> None:
        """Drop all subscribers; later publishes are ignored."""
        self._closed = True
        self._handlers.clear()
