"""Socket.IO link to the hardware controller relay.

The channel keeps one `socketio.AsyncClient` for the app lifetime. It sends a
`songInfo` snapshot each time the connection comes up and whenever the
track/playing/playlist-length view of the player changes, and forwards inbound
`command` frames to the dispatcher.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from typing import Any

import socketio

from walkman_player.events import (
    ConnectionState,
    ConnectionStateChanged,
    EventBus,
    PlayerStateChanged,
)
from walkman_player.services.command_dispatcher import CommandDispatcher
from walkman_player.services.transport_engine import TransportEngine

logger = logging.getLogger(__name__)

SONG_INFO_EVENT = "songInfo"
COMMAND_EVENT = "command"
TRANSPORTS = ["websocket", "polling"]
INITIAL_BACKOFF_S = 1.0
MAX_BACKOFF_S = 10.0
BACKOFF_FACTOR = 1.5

SyncKey = tuple[str | None, int | None, bool, int]
ClientFactory = Callable[[], Any]


def default_client_factory() -> socketio.AsyncClient:
    return socketio.AsyncClient(
        reconnection=True,
        reconnection_delay=INITIAL_BACKOFF_S,
        reconnection_delay_max=MAX_BACKOFF_S,
        logger=False,
        engineio_logger=False,
    )


class RemoteSyncChannel:
    """Bidirectional relay sync: snapshots out, transport commands in."""

    def __init__(
        self,
        *,
        url: str,
        bus: EventBus,
        engine: TransportEngine,
        dispatcher: CommandDispatcher,
        client_factory: ClientFactory = default_client_factory,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._bus = bus
        self._engine = engine
        self._dispatcher = dispatcher
        self._client_factory = client_factory
        self._sleep = sleep
        self._client: Any = None
        self._state: ConnectionState = "disconnected"
        self._closed = False
        self._connect_task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._last_sent: SyncKey | None = None
        self._command_tasks: set[asyncio.Task[Any]] = set()

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        if self._closed or self._client is not None:
            return
        client = self._client_factory()
        client.on("connect", self._on_connect)
        client.on("disconnect", self._on_disconnect)
        client.on(COMMAND_EVENT, self._on_command)
        self._client = client
        self._unsubscribe = self._bus.subscribe(
            PlayerStateChanged, self._on_player_state
        )
        self._connect_task = asyncio.create_task(self._connect_loop())

    async def wait_started(self) -> None:
        """Wait for the initial connect attempts to finish."""
        task = self._connect_task
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    async def close(self) -> None:
        """Stop syncing; no command is dispatched after this returns."""
        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        pending = list(self._command_tasks)
        for command_task in pending:
            command_task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        client = self._client
        if client is not None:
            try:
                await client.disconnect()
            except Exception:
                logger.exception("Relay disconnect failed")
        await self._set_state("disconnected")

    async def _connect_loop(self) -> None:
        backoff = INITIAL_BACKOFF_S
        while not self._closed:
            await self._set_state("connecting")
            try:
                await self._client.connect(self._url, transports=TRANSPORTS)
                # Later drops are retried by the client's own reconnection.
                return
            except socketio.exceptions.ConnectionError as exc:
                logger.warning(
                    "Relay connect failed; retrying in %.1fs: %s",
                    backoff,
                    exc,
                    extra={"url": self._url},
                )
            await self._set_state("disconnected")
            await self._sleep(backoff)
            backoff = min(backoff * BACKOFF_FACTOR, MAX_BACKOFF_S)

    async def _on_connect(self) -> None:
        if self._closed:
            return
        logger.info("Connected to relay", extra={"url": self._url})
        await self._set_state("connected")
        await self._send_snapshot()

    async def _on_disconnect(self, *_args: Any) -> None:
        if self._closed:
            return
        logger.info("Disconnected from relay", extra={"url": self._url})
        await self._set_state("disconnected")

    async def _on_command(self, data: Any = None) -> None:
        if self._closed:
            return
        if not isinstance(data, Mapping):
            logger.warning("Dropping malformed command frame %r", data)
            return
        # close() cancels commands still waiting on the engine.
        task = asyncio.create_task(self._dispatcher.handle_message(data))
        self._command_tasks.add(task)
        task.add_done_callback(self._command_tasks.discard)
        await asyncio.wait({task})
        if not task.cancelled():
            task.result()

    async def _on_player_state(self, event: PlayerStateChanged) -> None:
        if self._state != "connected":
            return
        if self._sync_key(event) == self._last_sent:
            return
        await self._send_snapshot()

    def _sync_key(self, event: PlayerStateChanged) -> SyncKey:
        track = self._engine.current_track
        return (
            track.id if track is not None else None,
            event.state.current_index,
            event.state.is_playing,
            event.track_count,
        )

    async def _send_snapshot(self) -> None:
        state = self._engine.state
        track = self._engine.current_track
        key: SyncKey = (
            track.id if track is not None else None,
            state.current_index,
            state.is_playing,
            len(self._engine.playlist),
        )
        self._last_sent = key
        payload = self._engine.snapshot().to_payload()
        try:
            await self._client.emit(SONG_INFO_EVENT, payload)
        except socketio.exceptions.SocketIOError as exc:
            logger.warning("Dropping songInfo update: %s", exc)
            return
        logger.debug("Sent songInfo", extra={"payload": payload})

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self._state = state
        await self._bus.publish(ConnectionStateChanged(state))
