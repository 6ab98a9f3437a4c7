"""Tests for runtime config precedence behavior."""

from __future__ import annotations

from walkman_player.cli import build_parser
from walkman_player.runtime_config import (
    DEFAULT_RELAY_URL,
    RELAY_URL_ENV,
    clamp_visualizer_fps,
    normalize_relay_url,
    resolve_backend_name,
    resolve_log_level,
    resolve_relay_url,
)


def test_resolve_log_level_precedence_matrix() -> None:
    assert resolve_log_level(verbose=False, quiet=False) == "INFO"
    assert resolve_log_level(verbose=True, quiet=False) == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=True) == "WARNING"
    assert resolve_log_level(verbose=True, quiet=True) == "WARNING"


def test_saved_log_level_applies_without_flags() -> None:
    assert resolve_log_level(verbose=False, quiet=False, configured=" debug ") == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=False, configured="") == "INFO"
    assert resolve_log_level(verbose=True, quiet=False, configured="ERROR") == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=True, configured="DEBUG") == "WARNING"


def test_parser_flags_feed_log_resolution() -> None:
    args = build_parser().parse_args(["--backend", "vlc", "--verbose", "--quiet"])
    assert args.backend == "vlc"
    assert resolve_log_level(verbose=args.verbose, quiet=args.quiet) == "WARNING"


def test_relay_url_precedence() -> None:
    env = {RELAY_URL_ENV: "https://env.example.test"}
    assert (
        resolve_relay_url("https://cli.example.test/", "https://state.example.test", environ=env)
        == "https://cli.example.test"
    )
    assert (
        resolve_relay_url(None, "https://state.example.test", environ=env)
        == "https://env.example.test"
    )
    assert (
        resolve_relay_url(None, "https://state.example.test", environ={})
        == "https://state.example.test"
    )
    assert resolve_relay_url(None, None, environ={}) == DEFAULT_RELAY_URL


def test_invalid_relay_urls_are_skipped() -> None:
    assert normalize_relay_url("ftp://relay.example.test") is None
    assert normalize_relay_url("   ") is None
    assert normalize_relay_url("not a url") is None
    assert resolve_relay_url("garbage", None, environ={}) == DEFAULT_RELAY_URL


def test_backend_name_resolution() -> None:
    assert resolve_backend_name("vlc", "fake") == "vlc"
    assert resolve_backend_name(None, "vlc") == "vlc"
    assert resolve_backend_name(None, "bogus") == "fake"
    assert resolve_backend_name(None, None) == "fake"


def test_visualizer_fps_clamped() -> None:
    assert clamp_visualizer_fps(None) == 30
    assert clamp_visualizer_fps(1) == 5
    assert clamp_visualizer_fps(240) == 60
    assert clamp_visualizer_fps(24) == 24
