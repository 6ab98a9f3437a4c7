"""VLC playback backend using python-vlc."""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, cast

from .playback_backend import (
    BackendError,
    BackendEvent,
    BackendStatus,
    MediaChanged,
    MediaEnded,
    PlaybackStartError,
    PositionUpdated,
    StateChanged,
)
from .signal_tap import PcmSignalTap

logger = logging.getLogger(__name__)


@dataclass
class _Command:
    name: str
    args: tuple[Any, ...]
    future: asyncio.Future[Any] | None


@dataclass
class _PollState:
    """What the backend thread last reported for the bound media."""

    source: str | None = None
    last_pos: int = -1
    last_duration: int = -1
    last_state: BackendStatus = "idle"


class VLCPlaybackBackend:
    """Playback backend backed by a dedicated libVLC thread.

    libVLC calls are only made from the backend thread; coroutines submit
    commands through a queue and await the result future.
    """

    def __init__(
        self,
        *,
        poll_interval_ms: int = 200,
        signal_tap: PcmSignalTap | None = None,
    ) -> None:
        self._poll_interval = poll_interval_ms / 1000
        self._handler: Callable[[BackendEvent], Awaitable[None]] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: queue.Queue[_Command] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._tap = signal_tap or PcmSignalTap()

    def set_event_handler(
        self, handler: Callable[[BackendEvent], Awaitable[None]]
    ) -> None:
        self._handler = handler

    async def start(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.get_running_loop()
        ready_future: asyncio.Future[None] = self._loop.create_future()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._thread_main,
            args=(ready_future,),
            name="VLCBackendThread",
            daemon=True,
        )
        self._thread.start()
        await ready_future

    async def shutdown(self) -> None:
        await self._tap.release()
        if self._thread is None:
            return
        self._stop_event.set()
        self._queue.put(_Command("wake", (), None))
        self._thread.join(timeout=2.0)
        self._thread = None

    async def load(self, source: str) -> None:
        await self._submit("load", source)
        await self._tap.bind(source)

    async def unload(self) -> None:
        await self._submit("unload")
        await self._tap.release()

    async def release(self, source: str) -> None:
        await self._tap.release(source)

    async def resume_output(self) -> None:
        await self._submit("resume_output")

    async def play(self) -> None:
        await self._submit("play")

    async def pause(self) -> None:
        await self._submit("pause")

    async def seek_ms(self, position_ms: int) -> None:
        await self._submit("seek_ms", position_ms)

    async def set_volume(self, volume: float) -> None:
        await self._submit("set_volume", volume)

    async def get_position_ms(self) -> int:
        return int(await self._submit("get_position_ms"))

    async def get_duration_ms(self) -> int:
        return int(await self._submit("get_duration_ms"))

    async def get_state(self) -> BackendStatus:
        return cast(BackendStatus, await self._submit("get_state"))

    async def get_frequency_data(self) -> bytes | None:
        if not self._tap.ready:
            return None
        position_ms = await self.get_position_ms()
        return self._tap.frequency_data(position_ms)

    async def _submit(self, name: str, *args: Any) -> Any:
        if self._loop is None:
            raise RuntimeError("VLC backend not started.")
        future: asyncio.Future[Any] = self._loop.create_future()
        self._queue.put(_Command(name, args, future))
        return await future

    def _thread_main(self, ready_future: asyncio.Future[None]) -> None:
        try:
            import vlc

            instance = vlc.Instance("--no-video")
            player = instance.media_player_new()
        except Exception as exc:  # pragma: no cover - depends on VLC install
            self._notify_future_exception(
                ready_future,
                RuntimeError(
                    "VLC backend unavailable. Ensure VLC/libVLC is installed."
                ),
            )
            self._emit_event(BackendError(str(exc)))
            return

        self._notify_future_result(ready_future, None)
        poll = _PollState()

        while not self._stop_event.is_set():
            try:
                cmd = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                cmd = None

            if cmd is not None and cmd.name != "wake":
                try:
                    result = self._handle_command(cmd, instance, player)
                    self._notify_future_result(cmd.future, result)
                except Exception as exc:
                    self._notify_future_exception(cmd.future, exc)
                if cmd.name == "load":
                    poll = _PollState(source=cmd.args[0], last_state=poll.last_state)
                elif cmd.name == "unload":
                    poll = _PollState(last_state=poll.last_state)

            self._poll_player(player, poll)

        player.stop()

    def _poll_player(self, player: Any, poll: _PollState) -> None:
        """Report state, duration and clock changes of the bound media."""
        state = _map_state(player)
        if state != poll.last_state:
            previous_state = poll.last_state
            poll.last_state = state
            self._emit_event(StateChanged(state))
            if state == "ended" and previous_state == "playing":
                self._emit_event(MediaEnded(poll.source))

        if state in {"playing", "paused"}:
            pos = max(player.get_time(), 0)
            duration = max(player.get_length(), 0)
            if duration != poll.last_duration:
                poll.last_duration = duration
                if duration > 0:
                    self._emit_event(MediaChanged(duration, poll.source))
            if pos != poll.last_pos:
                poll.last_pos = pos
                self._emit_event(PositionUpdated(pos, duration, poll.source))

    def _handle_command(self, cmd: _Command, instance: Any, player: Any) -> Any:
        name = cmd.name
        if name == "load":
            (source,) = cmd.args
            player.stop()
            player.set_media(instance.media_new_path(source))
            return None
        if name == "unload":
            player.stop()
            player.set_media(None)
            return None
        if name == "resume_output":
            player.audio_set_mute(False)
            return None
        if name == "play":
            if player.get_media() is None:
                raise PlaybackStartError("No media loaded.")
            if _map_state(player) == "ended":
                player.stop()
            if player.play() == -1:
                raise PlaybackStartError("libVLC refused to start playback.")
            return None
        if name == "pause":
            player.set_pause(1)
            return None
        if name == "seek_ms":
            (pos,) = cmd.args
            player.set_time(int(pos))
            return None
        if name == "set_volume":
            (vol,) = cmd.args
            player.audio_set_volume(int(round(float(vol) * 100)))
            return None
        if name == "get_position_ms":
            return max(player.get_time(), 0)
        if name == "get_duration_ms":
            return max(player.get_length(), 0)
        if name == "get_state":
            return _map_state(player)
        raise ValueError(f"Unknown command {name}")

    def _emit_event(self, event: BackendEvent) -> None:
        if self._handler is None or self._loop is None:
            return
        coro = self._handler(event)
        asyncio.run_coroutine_threadsafe(
            cast(Coroutine[Any, Any, None], coro), self._loop
        )

    def _notify_future_result(
        self, future: asyncio.Future[Any] | None, value: Any
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._resolve_future_result, future, value)

    def _notify_future_exception(
        self, future: asyncio.Future[Any] | None, exc: Exception
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._resolve_future_exception, future, exc)

    @staticmethod
    def _resolve_future_result(future: asyncio.Future[Any], value: Any) -> None:
        if not future.done():
            future.set_result(value)

    @staticmethod
    def _resolve_future_exception(
        future: asyncio.Future[Any], exc: Exception
    ) -> None:
        if not future.done():
            future.set_exception(exc)


def _map_state(player: Any) -> BackendStatus:
    try:
        state = player.get_state()
    except Exception:
        return "error"
    # python-vlc enums stringify as "State.Playing".
    name = (getattr(state, "name", None) or str(state).rsplit(".", 1)[-1]).lower()
    if name == "playing":
        return "playing"
    if name == "paused":
        return "paused"
    if name == "ended":
        return "ended"
    if name in {"stopped", "opening", "buffering"}:
        return "ready" if player.get_media() is not None else "idle"
    if name == "error":
        return "error"
    return "idle"
