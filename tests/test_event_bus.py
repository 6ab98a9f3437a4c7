"""Tests for the internal event bus."""

from __future__ import annotations

import asyncio
import logging

from walkman_player.events import EventBus, PositionChanged, TrackEnded


def _run(coro):
    return asyncio.run(coro)


def test_publish_delivers_in_subscription_order_by_type() -> None:
    async def run() -> None:
        bus = EventBus()
        seen: list[str] = []

        async def first(event: PositionChanged) -> None:
            seen.append(f"first:{event.position_s}")

        async def second(event: PositionChanged) -> None:
            seen.append(f"second:{event.position_s}")

        async def ended(event: TrackEnded) -> None:
            seen.append(f"ended:{event.track_id}")

        bus.subscribe(PositionChanged, first)
        bus.subscribe(PositionChanged, second)
        bus.subscribe(TrackEnded, ended)
        await bus.publish(PositionChanged(1.5))
        await bus.publish(TrackEnded("t1"))
        assert seen == ["first:1.5", "second:1.5", "ended:t1"]

    _run(run())


def test_failing_handler_does_not_block_others(caplog) -> None:
    async def run() -> None:
        bus = EventBus()
        seen: list[float] = []

        async def broken(_event: PositionChanged) -> None:
            raise RuntimeError("boom")

        async def ok(event: PositionChanged) -> None:
            seen.append(event.position_s)

        bus.subscribe(PositionChanged, broken)
        bus.subscribe(PositionChanged, ok)
        await bus.publish(PositionChanged(2.0))
        assert seen == [2.0]

    caplog.set_level(logging.ERROR)
    _run(run())
    assert "Event handler failed" in caplog.text


def test_unsubscribe_and_close() -> None:
    async def run() -> None:
        bus = EventBus()
        seen: list[float] = []

        async def handler(event: PositionChanged) -> None:
            seen.append(event.position_s)

        unsubscribe = bus.subscribe(PositionChanged, handler)
        await bus.publish(PositionChanged(1.0))
        unsubscribe()
        unsubscribe()
        await bus.publish(PositionChanged(2.0))
        bus.subscribe(PositionChanged, handler)
        bus.close()
        await bus.publish(PositionChanged(3.0))
        assert seen == [1.0]
        assert bus.closed

    _run(run())
