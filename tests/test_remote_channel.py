"""Tests for the Socket.IO relay channel using an in-memory client."""

from __future__ import annotations

import asyncio
import logging

import socketio

from walkman_player.events import ConnectionStateChanged, EventBus
from walkman_player.services.command_dispatcher import CommandDispatcher
from walkman_player.services.fake_backend import FakePlaybackBackend
from walkman_player.services.playlist_store import IngestEntry, PlaylistStore
from walkman_player.services.remote_channel import TRANSPORTS, RemoteSyncChannel
from walkman_player.services.transport_engine import TransportEngine

RELAY_URL = "https://relay.example.test"


def _run(coro):
    return asyncio.run(coro)


class FakeSocketClient:
    """Stands in for `socketio.AsyncClient`; runs handlers inline."""

    def __init__(self, *, fail_connects: int = 0, emit_error: Exception | None = None):
        self.handlers: dict[str, object] = {}
        self.emitted: list[tuple[str, object]] = []
        self.connect_calls: list[tuple[str, list[str] | None]] = []
        self.fail_connects = fail_connects
        self.emit_error = emit_error
        self.disconnected = False

    def on(self, event: str, handler=None, namespace=None) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, transports=None) -> None:
        self.connect_calls.append((url, transports))
        if self.fail_connects:
            self.fail_connects -= 1
            raise socketio.exceptions.ConnectionError("relay unreachable")
        await self.trigger("connect")

    async def emit(self, event: str, data=None) -> None:
        if self.emit_error is not None:
            raise self.emit_error
        self.emitted.append((event, data))

    async def disconnect(self) -> None:
        self.disconnected = True
        await self.trigger("disconnect")

    async def trigger(self, event: str, *args) -> None:
        handler = self.handlers[event]
        await handler(*args)  # type: ignore[operator]

    def song_infos(self) -> list[dict]:
        return [data for event, data in self.emitted if event == "songInfo"]


async def _setup(tmp_path, client: FakeSocketClient, *, tracks: int = 3):
    bus = EventBus()
    engine = TransportEngine(
        bus=bus,
        backend=FakePlaybackBackend(),
        playlist=PlaylistStore(tmp_path / "playlist.json"),
    )
    await engine.start()
    if tracks:
        await engine.add_tracks(
            [IngestEntry(f"T{idx}.mp3", f"/m/T{idx}.mp3") for idx in range(tracks)]
        )
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    channel = RemoteSyncChannel(
        url=RELAY_URL,
        bus=bus,
        engine=engine,
        dispatcher=CommandDispatcher(engine, bus),
        client_factory=lambda: client,
        sleep=fake_sleep,
    )
    return bus, engine, channel, delays


def test_exactly_one_snapshot_per_connect(tmp_path) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        assert channel.state == "connected"
        assert client.connect_calls == [(RELAY_URL, TRANSPORTS)]
        assert len(client.song_infos()) == 1

        await client.trigger("disconnect")
        assert channel.state == "disconnected"
        await client.trigger("connect")
        assert len(client.song_infos()) == 2
        await channel.close()
        await engine.shutdown()

    _run(run())


def test_position_ticks_do_not_emit_but_state_changes_do(tmp_path) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        await engine.seek(42.0)
        assert len(client.song_infos()) == 1
        await engine.play()
        infos = client.song_infos()
        assert len(infos) == 2
        assert infos[-1]["isPlaying"] is True
        assert infos[-1]["currentTime"] == 42
        await channel.close()
        await engine.shutdown()

    _run(run())


def test_remote_next_reports_second_track(tmp_path) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        await engine.play()
        await engine.seek(12.0)
        await client.trigger("command", {"command": "next"})
        assert engine.state.current_index == 1
        assert engine.state.is_playing is True
        assert engine.state.position_s == 0.0
        last = client.song_infos()[-1]
        assert last["trackNumber"] == 2
        assert last["totalTracks"] == 3
        assert last["songName"] == "T1"
        assert last["isPlaying"] is True
        assert last["currentTime"] == 0
        await channel.close()
        await engine.shutdown()

    _run(run())


def test_snapshot_without_tracks_reports_no_song(tmp_path) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client, tracks=0)
        await channel.start()
        await channel.wait_started()
        assert client.song_infos() == [
            {
                "songName": "No Song",
                "isPlaying": False,
                "currentTime": 0,
                "duration": 0,
                "trackNumber": 1,
                "totalTracks": 0,
            }
        ]
        await channel.close()
        await engine.shutdown()

    _run(run())


def test_initial_connect_retries_with_backoff(tmp_path, caplog) -> None:
    async def run() -> None:
        client = FakeSocketClient(fail_connects=3)
        bus, engine, channel, delays = await _setup(tmp_path, client)
        states: list[str] = []

        async def on_state(event: ConnectionStateChanged) -> None:
            states.append(event.state)

        bus.subscribe(ConnectionStateChanged, on_state)
        await channel.start()
        await channel.wait_started()
        assert delays == [1.0, 1.5, 2.25]
        assert states[-1] == "connected"
        assert states.count("connecting") == 4
        assert len(client.song_infos()) == 1
        await channel.close()
        await engine.shutdown()

    caplog.set_level(logging.WARNING)
    _run(run())
    assert "Relay connect failed" in caplog.text


def test_malformed_command_frames_are_dropped(tmp_path, caplog) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        await client.trigger("command", "next")
        await client.trigger("command")
        assert engine.state.current_index == 0
        await channel.close()
        await engine.shutdown()

    caplog.set_level(logging.WARNING)
    _run(run())
    assert "malformed command frame" in caplog.text


def test_no_commands_dispatched_after_close(tmp_path) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        await channel.close()
        assert client.disconnected is True
        assert channel.state == "disconnected"
        sent = len(client.song_infos())
        await client.trigger("command", {"command": "next"})
        await client.trigger("connect")
        await engine.play()
        assert engine.state.current_index == 0
        assert len(client.song_infos()) == sent
        await engine.shutdown()

    _run(run())


def test_command_waiting_on_engine_is_dropped_by_close(tmp_path) -> None:
    async def run() -> None:
        client = FakeSocketClient()
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        await engine._lock.acquire()
        waiting = asyncio.create_task(client.trigger("command", {"command": "next"}))
        for _ in range(5):
            await asyncio.sleep(0)
        await channel.close()
        engine._lock.release()
        await waiting
        assert engine.state.current_index == 0
        await engine.advance("next")
        assert engine.state.current_index == 1
        await engine.shutdown()

    _run(run())

def test_emit_failures_are_logged(tmp_path, caplog) -> None:
    async def run() -> None:
        client = FakeSocketClient(
            emit_error=socketio.exceptions.BadNamespaceError("/ is not connected")
        )
        _bus, engine, channel, _delays = await _setup(tmp_path, client)
        await channel.start()
        await channel.wait_started()
        assert channel.state == "connected"
        await channel.close()
        await engine.shutdown()

    caplog.set_level(logging.WARNING)
    _run(run())
    assert "Dropping songInfo update" in caplog.text
