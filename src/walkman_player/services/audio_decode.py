"""Decode media into mono 16-bit PCM for the live signal tap."""

from __future__ import annotations

import shutil
import subprocess
import sys
import wave
from array import array
from dataclasses import dataclass
from pathlib import Path

TAP_SAMPLE_RATE = 22_050
_WAVE_SUFFIXES = {".wav", ".wave"}
_FFMPEG_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class DecodedAudio:
    """Mono PCM (signed 16-bit) at `sample_rate`."""

    sample_rate: int
    samples: array

    @property
    def duration_ms(self) -> int:
        if self.sample_rate <= 0:
            return 0
        return int((len(self.samples) * 1000) / self.sample_rate)


def decode_track_mono(track_path: Path | str) -> DecodedAudio | None:
    """Decode a file to mono PCM; WAV natively, everything else through ffmpeg."""
    path = Path(track_path)
    if not path.exists() or not path.is_file():
        return None
    decoded = _decode_wave(path)
    if decoded is None:
        if path.suffix.lower() in _WAVE_SUFFIXES:
            return None
        decoded = _decode_ffmpeg(path)
    if decoded is None or not decoded.samples:
        return None
    return decoded


def _decode_wave(path: Path) -> DecodedAudio | None:
    try:
        with wave.open(str(path), "rb") as handle:
            channels = int(handle.getnchannels())
            frame_rate = int(handle.getframerate())
            sample_width = int(handle.getsampwidth())
            if channels <= 0 or frame_rate <= 0 or sample_width <= 0:
                return None
            raw = handle.readframes(handle.getnframes())
    except (wave.Error, EOFError, OSError, ValueError):
        return None
    mono = _pcm_to_mono16(raw, channels=channels, sample_width=sample_width)
    if not mono:
        return None
    return _decimate(DecodedAudio(frame_rate, mono), TAP_SAMPLE_RATE)


def _decode_ffmpeg(path: Path) -> DecodedAudio | None:
    ffmpeg_bin = shutil.which("ffmpeg")
    if ffmpeg_bin is None:
        return None
    cmd = [
        ffmpeg_bin,
        "-v",
        "error",
        "-i",
        str(path),
        "-vn",
        "-sn",
        "-dn",
        "-f",
        "s16le",
        "-acodec",
        "pcm_s16le",
        "-ac",
        "1",
        "-ar",
        str(TAP_SAMPLE_RATE),
        "pipe:1",
    ]
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            timeout=_FFMPEG_TIMEOUT_S,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if proc.returncode != 0 or not proc.stdout:
        return None
    return DecodedAudio(TAP_SAMPLE_RATE, _s16le_array(proc.stdout))


def _s16le_array(raw: bytes) -> array:
    usable = len(raw) - (len(raw) % 2)
    samples = array("h", raw[:usable])
    if sys.byteorder == "big":
        samples.byteswap()
    return samples


def _pcm_to_mono16(raw: bytes, *, channels: int, sample_width: int) -> array:
    if sample_width == 2 and channels == 1:
        return _s16le_array(raw)
    bytes_per_frame = channels * sample_width
    frame_count = len(raw) // bytes_per_frame
    mono = array("h")
    if frame_count <= 0:
        return mono
    scale = 32767.0 / _sample_max(sample_width)
    for frame_idx in range(frame_count):
        offset = frame_idx * bytes_per_frame
        total = 0
        for channel in range(channels):
            total += _read_sample(raw, offset + (channel * sample_width), sample_width)
        value = int((total / channels) * scale)
        mono.append(max(-32768, min(32767, value)))
    return mono


def _read_sample(raw: bytes, offset: int, sample_width: int) -> int:
    if sample_width == 1:
        return raw[offset] - 128
    if sample_width == 2:
        return int.from_bytes(raw[offset : offset + 2], "little", signed=True)
    if sample_width == 3:
        value = int.from_bytes(raw[offset : offset + 3], "little", signed=False)
        if value & 0x800000:
            value -= 0x1000000
        return value
    if sample_width == 4:
        return int.from_bytes(raw[offset : offset + 4], "little", signed=True)
    raise ValueError("Unsupported sample width")


def _sample_max(sample_width: int) -> float:
    if sample_width == 1:
        return 128.0
    if sample_width == 3:
        return 8_388_608.0
    if sample_width == 4:
        return 2_147_483_648.0
    return 32768.0


def _decimate(decoded: DecodedAudio, target_rate: int) -> DecodedAudio:
    """Nearest-sample downsampling; sources at or below target pass through."""
    source_rate = decoded.sample_rate
    if source_rate <= target_rate:
        return decoded
    step = source_rate / target_rate
    src = decoded.samples
    out = array("h")
    idx = 0.0
    size = len(src)
    while int(idx) < size:
        out.append(src[int(idx)])
        idx += step
    return DecodedAudio(target_rate, out)
