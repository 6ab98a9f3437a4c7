"""JSON persistence for player settings.

Loading is tolerant of invalid/missing values so partial or corrupt writes
degrade to safe defaults instead of aborting startup.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from walkman_player.utils.atomic_write import write_text_atomic

logger = logging.getLogger(__name__)

DEFAULT_VOLUME = 0.7


@dataclass(frozen=True)
class AppState:
    """Settings loaded at startup and updated while the player runs."""

    volume: float = DEFAULT_VOLUME
    relay_url: str | None = None
    remote_enabled: bool = True
    playback_backend: str = "vlc"
    visualizer_fps: int = 30
    log_level: str = "INFO"


def _coerce_state(data: dict[str, Any]) -> AppState:
    """Coerce an untyped JSON object into `AppState`, field by field."""

    def _volume(value: Any) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return DEFAULT_VOLUME
        normalized = float(value)
        if not math.isfinite(normalized):
            return DEFAULT_VOLUME
        return max(0.0, min(1.0, normalized))

    def _str_or_none(value: Any) -> str | None:
        return value if isinstance(value, str) and value.strip() else None

    def _bool_or_default(value: Any, default: bool) -> bool:
        return value if isinstance(value, bool) else default

    def _str_or_default(value: Any, default: str) -> str:
        return value if isinstance(value, str) else default

    def _int_or_default(value: Any, default: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return value

    return AppState(
        volume=_volume(data.get("volume")),
        relay_url=_str_or_none(data.get("relay_url")),
        remote_enabled=_bool_or_default(data.get("remote_enabled"), True),
        playback_backend=_str_or_default(data.get("playback_backend"), "vlc"),
        visualizer_fps=_int_or_default(data.get("visualizer_fps"), 30),
        log_level=_str_or_default(data.get("log_level"), "INFO"),
    )


def load_state(path: Path) -> AppState:
    """Load settings from disk, falling back to defaults on any data error."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("Settings file missing at %s; using defaults.", path)
        return AppState()
    except OSError as exc:
        logger.warning("Failed to read settings file %s: %s; using defaults.", path, exc)
        return AppState()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Settings file at %s is invalid JSON; using defaults.", path)
        return AppState()

    if not isinstance(data, dict):
        logger.warning("Settings file at %s is not a JSON object; using defaults.", path)
        return AppState()
    return _coerce_state(data)


def save_state(path: Path, state: AppState) -> None:
    """Persist settings atomically."""
    write_text_atomic(path, json.dumps(asdict(state), indent=2, sort_keys=True))
