"""Live signal tap for backends that cannot expose their output buffer.

libVLC does not hand PCM back to Python, so the tap decodes the bound source
once in the background and analyses the window ending at the backend's media
clock. Decoded PCM is dropped when the track is released or a new source is
bound.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from walkman_player.utils.async_utils import run_blocking

from .audio_decode import DecodedAudio, decode_track_mono
from .audio_spectrum_analysis import SpectrumAnalyser, pcm_window

logger = logging.getLogger(__name__)


class PcmSignalTap:
    """Decode-once, analyse-on-demand spectrum source for one bound track."""

    def __init__(
        self,
        *,
        analyser: SpectrumAnalyser | None = None,
        decoder: Callable[[Path | str], DecodedAudio | None] = decode_track_mono,
    ) -> None:
        self._analyser = analyser or SpectrumAnalyser()
        self._decoder = decoder
        self._source: str | None = None
        self._decoded: DecodedAudio | None = None
        self._decode_task: asyncio.Task[None] | None = None

    @property
    def source(self) -> str | None:
        return self._source

    @property
    def ready(self) -> bool:
        return self._decoded is not None

    async def bind(self, source: str) -> None:
        """Switch to `source`, starting a background decode if needed."""
        if source == self._source:
            return
        await self._cancel_decode()
        self._source = source
        self._decoded = None
        self._analyser.reset()
        self._decode_task = asyncio.create_task(self._decode(source))

    async def release(self, source: str | None = None) -> None:
        """Drop decoded PCM for `source` (or whatever is bound)."""
        if source is not None and source != self._source:
            return
        await self._cancel_decode()
        self._source = None
        self._decoded = None
        self._analyser.reset()

    def frequency_data(self, position_ms: int) -> bytes | None:
        decoded = self._decoded
        if decoded is None:
            return None
        window = pcm_window(
            decoded.samples,
            decoded.sample_rate,
            position_ms,
            self._analyser.fft_size,
        )
        return self._analyser.analyse(window)

    async def wait_ready(self) -> bool:
        """Await the pending decode (used by tools/tests); returns readiness."""
        task = self._decode_task
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task
        return self.ready

    async def _decode(self, source: str) -> None:
        try:
            decoded = await run_blocking(self._decoder, source)
        except Exception:
            logger.exception("Signal tap decode failed for %s", source)
            return
        if self._source != source:
            return
        if decoded is None:
            logger.info(
                "Signal tap unavailable for %s (not decodable; ffmpeg missing?)",
                source,
            )
            return
        self._decoded = decoded
        logger.debug(
            "Signal tap ready",
            extra={
                "source": source,
                "sample_rate": decoded.sample_rate,
                "duration_ms": decoded.duration_ms,
            },
        )

    async def _cancel_decode(self) -> None:
        task = self._decode_task
        self._decode_task = None
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
