"""Runtime configuration normalization helpers.

These helpers keep CLI flag, persisted setting, and environment interpretation
deterministic across entrypoints.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from urllib.parse import urlparse

DEFAULT_RELAY_URL = "https://walkman-esp-backend.onrender.com"
RELAY_URL_ENV = "WALKMAN_BACKEND_URL"
VISUALIZER_FPS_MIN = 5
VISUALIZER_FPS_MAX = 60
VISUALIZER_FPS_DEFAULT = 30
PLAYBACK_BACKENDS = ("fake", "vlc")


def resolve_log_level(
    *, verbose: bool, quiet: bool, configured: str | None = None
) -> str:
    """Resolve effective log level from CLI flags, then the saved setting.

    Precedence is deterministic: --quiet overrides --verbose, and either flag
    overrides `configured`.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    if configured is not None and configured.strip():
        return configured.strip().upper()
    return "INFO"


def normalize_relay_url(value: str | None) -> str | None:
    """Return a usable http(s)/ws(s) relay URL or None when invalid/blank."""
    if value is None:
        return None
    candidate = value.strip().rstrip("/")
    if not candidate:
        return None
    parsed = urlparse(candidate)
    if parsed.scheme not in {"http", "https", "ws", "wss"} or not parsed.netloc:
        return None
    return candidate


def resolve_relay_url(
    cli_value: str | None,
    state_value: str | None,
    *,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the relay endpoint: CLI, then environment, then settings, then default."""
    env = os.environ if environ is None else environ
    for candidate in (cli_value, env.get(RELAY_URL_ENV), state_value):
        normalized = normalize_relay_url(candidate)
        if normalized is not None:
            return normalized
    return DEFAULT_RELAY_URL


def resolve_backend_name(cli_backend: str | None, state_backend: str | None) -> str:
    for candidate in (cli_backend, state_backend):
        if candidate is not None and candidate in PLAYBACK_BACKENDS:
            return candidate
    return "fake"


def clamp_visualizer_fps(value: int | None) -> int:
    """Clamp requested sampling cadence to the supported FPS range."""
    if value is None or isinstance(value, bool):
        return VISUALIZER_FPS_DEFAULT
    return max(VISUALIZER_FPS_MIN, min(VISUALIZER_FPS_MAX, int(value)))
