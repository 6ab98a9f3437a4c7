"""Tests for the play-gated visualization sampler."""

from __future__ import annotations

import asyncio

from walkman_player.events import EventBus, PlayerStateChanged, SpectrumUpdated
from walkman_player.services.transport_engine import PlayerState
from walkman_player.services.visualization_sampler import VisualizationSampler


def _run(coro):
    return asyncio.run(coro)


class _StaticSource:
    def __init__(self, data: bytes | None) -> None:
        self.data = data
        self.calls = 0

    async def get_frequency_data(self) -> bytes | None:
        self.calls += 1
        return self.data


def test_sampling_task_follows_playing_state() -> None:
    async def run() -> None:
        bus = EventBus()
        frames: list[tuple[float, ...]] = []

        async def on_frame(event: SpectrumUpdated) -> None:
            frames.append(event.amplitudes)

        bus.subscribe(SpectrumUpdated, on_frame)
        source = _StaticSource(bytes([255] * 32))
        sampler = VisualizationSampler(bus, source, fps=60)
        sampler.attach()

        await bus.publish(PlayerStateChanged(PlayerState(current_index=0, is_playing=True), 1))
        assert sampler.running
        await asyncio.sleep(0.1)
        await bus.publish(PlayerStateChanged(PlayerState(current_index=0), 1))
        assert not sampler.running

        assert frames
        assert sampler.amplitudes == (1.0,) * 32
        calls = source.calls
        await asyncio.sleep(0.05)
        assert source.calls == calls
        assert sampler.amplitudes == (1.0,) * 32
        await sampler.shutdown()

    _run(run())


def test_sample_once_normalizes_and_pads() -> None:
    async def run() -> None:
        sampler = VisualizationSampler(EventBus(), _StaticSource(bytes([0, 51, 255])))
        values = await sampler.sample_once()
        assert values is not None
        assert len(values) == 32
        assert values[:3] == (0.0, 0.2, 1.0)
        assert set(values[3:]) == {0.0}

    _run(run())


def test_sample_once_truncates_to_bin_count() -> None:
    async def run() -> None:
        sampler = VisualizationSampler(
            EventBus(), _StaticSource(bytes([255] * 64)), bin_count=16
        )
        values = await sampler.sample_once()
        assert values == (1.0,) * 16

    _run(run())


def test_missing_data_keeps_previous_frame() -> None:
    async def run() -> None:
        source = _StaticSource(bytes([255] * 32))
        sampler = VisualizationSampler(EventBus(), source)
        await sampler.sample_once()
        source.data = None
        assert await sampler.sample_once() is None
        assert sampler.amplitudes == (1.0,) * 32

    _run(run())


def test_source_without_tap_never_starts() -> None:
    async def run() -> None:
        sampler = VisualizationSampler(EventBus(), object())
        assert sampler.available is False
        sampler.start()
        assert sampler.running is False
        assert await sampler.sample_once() is None

    _run(run())


def test_fps_is_clamped() -> None:
    assert VisualizationSampler(EventBus(), object(), fps=500).fps == 60
    assert VisualizationSampler(EventBus(), object(), fps=1).fps == 5
    assert VisualizationSampler(EventBus(), object()).fps == 30
