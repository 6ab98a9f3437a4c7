"""Frame-paced spectrum sampling while playback is running."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress

from walkman_player.events import EventBus, PlayerStateChanged, SpectrumUpdated
from walkman_player.runtime_config import clamp_visualizer_fps
from walkman_player.services.audio_spectrum_analysis import normalize_bytes
from walkman_player.services.playback_backend import FrequencyDataProvider

logger = logging.getLogger(__name__)

DEFAULT_BIN_COUNT = 32


class VisualizationSampler:
    """Poll a frequency-data source at `fps` while the player is playing.

    The sampling task starts when `is_playing` turns True and is cancelled
    when it turns False. Amplitudes from the last frame stay readable while
    idle.
    """

    def __init__(
        self,
        bus: EventBus,
        provider: object,
        *,
        fps: int | None = None,
        bin_count: int = DEFAULT_BIN_COUNT,
    ) -> None:
        self._bus = bus
        self._provider = (
            provider if isinstance(provider, FrequencyDataProvider) else None
        )
        self._fps = clamp_visualizer_fps(fps)
        self._bin_count = bin_count
        self._amplitudes: tuple[float, ...] = (0.0,) * bin_count
        self._task: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def fps(self) -> int:
        return self._fps

    @property
    def amplitudes(self) -> tuple[float, ...]:
        return self._amplitudes

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def available(self) -> bool:
        return self._provider is not None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bus.subscribe(
                PlayerStateChanged, self._on_player_state
            )

    async def shutdown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.stop()

    def start(self) -> None:
        if self._provider is None or self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def sample_once(self) -> tuple[float, ...] | None:
        """Pull one frame; returns None when the source has nothing yet."""
        if self._provider is None:
            return None
        data = await self._provider.get_frequency_data()
        if not data:
            return None
        values = normalize_bytes(data[: self._bin_count])
        if len(values) < self._bin_count:
            values = values + (0.0,) * (self._bin_count - len(values))
        self._amplitudes = values
        await self._bus.publish(SpectrumUpdated(values))
        return values

    async def _on_player_state(self, event: PlayerStateChanged) -> None:
        if event.state.is_playing:
            self.start()
        else:
            await self.stop()

    async def _run(self) -> None:
        interval = 1.0 / self._fps
        while True:
            try:
                await self.sample_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Spectrum sampling failed")
            await asyncio.sleep(interval)
