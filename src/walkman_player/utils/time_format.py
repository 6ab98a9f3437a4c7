"""Time formatting helpers for the UI."""

from __future__ import annotations

import math


def format_time_s(seconds: float) -> str:
    """Format seconds as M:SS (minutes are not capped at 60)."""
    total = _coerce_seconds(seconds)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def progress_ratio(position_s: float, duration_s: float) -> float:
    """Return playback progress in [0, 1]; 0 when duration is unknown."""
    duration = _coerce_float(duration_s)
    if duration <= 0:
        return 0.0
    return max(0.0, min(1.0, _coerce_float(position_s) / duration))


def _coerce_float(value: float) -> float:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(numeric):
        return 0.0
    return numeric


def _coerce_seconds(value: float) -> int:
    return max(0, int(_coerce_float(value)))
