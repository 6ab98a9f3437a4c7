"""Real-time spectrum analysis for the visualization tap.

`SpectrumAnalyser` mirrors the behavior of a browser analyser node: a
Blackman-windowed FFT over the most recent `fft_size` samples, exponential
smoothing across frames, and byte scaling between `min_db` and `max_db`.
Sizes are tiny (64-point by default), so a direct DFT with precomputed
twiddle tables is fast enough in pure Python.
"""

from __future__ import annotations

import math
from array import array
from collections.abc import Sequence

DEFAULT_FFT_SIZE = 64
DEFAULT_SMOOTHING = 0.8
DEFAULT_MIN_DB = -100.0
DEFAULT_MAX_DB = -30.0


class SpectrumAnalyser:
    """Stateful analyser producing `fft_size // 2` byte magnitudes per frame."""

    def __init__(
        self,
        *,
        fft_size: int = DEFAULT_FFT_SIZE,
        smoothing: float = DEFAULT_SMOOTHING,
        min_db: float = DEFAULT_MIN_DB,
        max_db: float = DEFAULT_MAX_DB,
    ) -> None:
        if fft_size < 2 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two >= 2")
        if max_db <= min_db:
            raise ValueError("max_db must be greater than min_db")
        self._fft_size = fft_size
        self._smoothing = max(0.0, min(1.0, float(smoothing)))
        self._min_db = min_db
        self._max_db = max_db
        self._window = _blackman_window(fft_size)
        bins = fft_size // 2
        self._cos = [
            [math.cos(2.0 * math.pi * k * n / fft_size) for n in range(fft_size)]
            for k in range(bins)
        ]
        self._sin = [
            [math.sin(2.0 * math.pi * k * n / fft_size) for n in range(fft_size)]
            for k in range(bins)
        ]
        self._smoothed = [0.0] * bins

    @property
    def fft_size(self) -> int:
        return self._fft_size

    @property
    def bin_count(self) -> int:
        return self._fft_size // 2

    def reset(self) -> None:
        """Forget smoothing history (new source bound)."""
        self._smoothed = [0.0] * self.bin_count

    def analyse(self, samples: Sequence[float]) -> bytes:
        """Analyse the latest window of samples in [-1, 1].

        Short input is zero-padded at the front; longer input uses its tail.
        """
        size = self._fft_size
        frame = list(samples[-size:]) if len(samples) >= size else [
            *([0.0] * (size - len(samples))),
            *samples,
        ]
        windowed = [value * weight for value, weight in zip(frame, self._window)]
        tau = self._smoothing
        out = bytearray(self.bin_count)
        scale = 255.0 / (self._max_db - self._min_db)
        for k in range(self.bin_count):
            cos_row = self._cos[k]
            sin_row = self._sin[k]
            real = 0.0
            imag = 0.0
            for n, value in enumerate(windowed):
                real += value * cos_row[n]
                imag -= value * sin_row[n]
            magnitude = math.hypot(real, imag) / size
            smoothed = (tau * self._smoothed[k]) + ((1.0 - tau) * magnitude)
            self._smoothed[k] = smoothed
            out[k] = _to_byte(smoothed, self._min_db, scale)
        return bytes(out)


def pcm_window(samples: array, sample_rate: int, position_ms: int, size: int) -> list[float]:
    """Return `size` samples ending at `position_ms`, normalized to [-1, 1]."""
    if sample_rate <= 0 or size <= 0 or not samples:
        return []
    end = int((max(0, position_ms) * sample_rate) / 1000)
    end = max(0, min(len(samples), end))
    start = max(0, end - size)
    return [value / 32768.0 for value in samples[start:end]]


def normalize_bytes(data: bytes) -> tuple[float, ...]:
    """Map byte magnitudes to amplitudes in [0, 1]."""
    return tuple(value / 255.0 for value in data)


def _blackman_window(size: int) -> list[float]:
    a0, a1, a2 = 0.42, 0.5, 0.08
    return [
        a0
        - (a1 * math.cos((2.0 * math.pi * idx) / size))
        + (a2 * math.cos((4.0 * math.pi * idx) / size))
        for idx in range(size)
    ]


def _to_byte(magnitude: float, min_db: float, scale: float) -> int:
    if magnitude <= 0.0:
        return 0
    db = 20.0 * math.log10(magnitude)
    value = int(math.floor((db - min_db) * scale))
    return max(0, min(255, value))
