"""Tests for PCM decoding used by the signal tap."""

from __future__ import annotations

import wave

from walkman_player.services.audio_decode import TAP_SAMPLE_RATE, decode_track_mono


def _write_wav(path, *, channels: int, rate: int, frames: int) -> None:
    with wave.open(str(path), "wb") as handle:
        handle.setnchannels(channels)
        handle.setsampwidth(2)
        handle.setframerate(rate)
        frame = (1000).to_bytes(2, "little", signed=True) * channels
        handle.writeframes(frame * frames)


def test_stereo_wav_is_downmixed_and_decimated(tmp_path) -> None:
    path = tmp_path / "tone.wav"
    _write_wav(path, channels=2, rate=44_100, frames=4410)

    decoded = decode_track_mono(path)

    assert decoded is not None
    assert decoded.sample_rate == TAP_SAMPLE_RATE
    assert len(decoded.samples) == 2205
    assert decoded.duration_ms == 100
    assert all(abs(value - 1000) <= 1 for value in decoded.samples)


def test_mono_wav_below_tap_rate_passes_through(tmp_path) -> None:
    path = tmp_path / "low.wav"
    _write_wav(path, channels=1, rate=8000, frames=800)

    decoded = decode_track_mono(path)

    assert decoded is not None
    assert decoded.sample_rate == 8000
    assert len(decoded.samples) == 800


def test_missing_or_corrupt_wav_is_none(tmp_path) -> None:
    assert decode_track_mono(tmp_path / "missing.wav") is None
    broken = tmp_path / "broken.wav"
    broken.write_bytes(b"not a wave file")
    assert decode_track_mono(broken) is None
