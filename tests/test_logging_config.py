"""Tests for logging configuration and entrypoint wiring."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import walkman_player.cli as cli_module
from walkman_player.logging_utils import (
    JsonLogFormatter,
    resolve_numeric_level,
    setup_logging,
)
from walkman_player.paths import AppPaths
from walkman_player.state_store import AppState, save_state


def _flush_root_handlers() -> None:
    for handler in logging.getLogger().handlers:
        flush = getattr(handler, "flush", None)
        if callable(flush):
            flush()


def _restore_root(handlers: list[logging.Handler], level: int) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_setup_logging_default_path_writes_json(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    try:
        log_path = setup_logging(log_dir=tmp_path, level="INFO", console=False)
        logging.getLogger("walkman_player.test").info(
            "default-log-path", extra={"track_id": "abc"}
        )
        _flush_root_handlers()
        assert log_path == tmp_path / "walkman-player.log"
        line = log_path.read_text(encoding="utf-8").strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["message"] == "default-log-path"
        assert payload["level"] == "INFO"
        assert payload["context"] == {"track_id": "abc"}
    finally:
        _restore_root(original_handlers, original_level)


def test_setup_logging_custom_log_file_and_quiet_socketio(tmp_path) -> None:
    root = logging.getLogger()
    original_handlers = list(root.handlers)
    original_level = root.level
    custom_path = tmp_path / "custom" / "player.log"
    try:
        setup_logging(log_dir=tmp_path, level="DEBUG", log_file=custom_path)
        logging.getLogger("walkman_player.test").debug("custom-log-path")
        _flush_root_handlers()
        assert "custom-log-path" in custom_path.read_text(encoding="utf-8")
        assert logging.getLogger("socketio").level == logging.WARNING
    finally:
        _restore_root(original_handlers, original_level)


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad frame")
    except ValueError:
        record = logging.LogRecord(
            "walkman_player", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    payload = json.loads(JsonLogFormatter().format(record))
    assert "ValueError: bad frame" in payload["exception"]
    assert "context" not in payload


def test_resolve_numeric_level() -> None:
    assert resolve_numeric_level("debug") == logging.DEBUG
    assert resolve_numeric_level(logging.ERROR) == logging.ERROR
    assert resolve_numeric_level("nonsense") == logging.INFO


def test_cli_main_passes_effective_level_and_options(monkeypatch, tmp_path) -> None:
    captured: dict[str, object] = {}

    class FakeApp:
        def __init__(self, **kwargs) -> None:
            captured["app_kwargs"] = kwargs

        def run(self) -> None:
            captured["ran"] = True

    def fake_setup_logging(
        *, log_dir: Path, level: str, log_file: Path | None, console: bool
    ) -> Path:
        captured["level"] = level
        captured["log_file"] = log_file
        return log_dir / "walkman-player.log"

    import walkman_player.app as app_module

    monkeypatch.setattr(cli_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(
        cli_module, "default_paths", lambda: AppPaths.rooted_at(tmp_path)
    )
    monkeypatch.setattr(app_module, "WalkmanApp", FakeApp)

    rc = cli_module.main(
        [
            "--verbose",
            "--log-file",
            str(tmp_path / "cli.log"),
            "--backend",
            "fake",
            "--offline",
            "--visualizer-fps",
            "12",
        ]
    )

    assert rc == 0
    assert captured["level"] == "DEBUG"
    assert captured["log_file"] == tmp_path / "cli.log"
    assert captured["ran"] is True
    assert captured["app_kwargs"] == {
        "backend_name": "fake",
        "relay_url": None,
        "offline": True,
        "visualizer_fps": 12,
    }


def test_cli_main_returns_one_on_startup_failure(monkeypatch, tmp_path) -> None:
    def broken_setup_logging(**_kwargs):
        raise OSError("read-only log dir")

    monkeypatch.setattr(cli_module, "setup_logging", broken_setup_logging)
    monkeypatch.setattr(
        cli_module, "default_paths", lambda: AppPaths.rooted_at(tmp_path)
    )

    assert cli_module.main([]) == 1


def test_cli_main_falls_back_to_saved_log_level(monkeypatch, tmp_path) -> None:
    levels: list[str] = []

    class FakeApp:
        def __init__(self, **_kwargs) -> None:
            pass

        def run(self) -> None:
            pass

    def fake_setup_logging(
        *, log_dir: Path, level: str, log_file: Path | None, console: bool
    ) -> Path:
        levels.append(level)
        return log_dir / "walkman-player.log"

    import walkman_player.app as app_module

    paths = AppPaths.rooted_at(tmp_path).ensure()
    save_state(paths.state_file, AppState(log_level="debug"))
    monkeypatch.setattr(cli_module, "setup_logging", fake_setup_logging)
    monkeypatch.setattr(cli_module, "default_paths", lambda: paths)
    monkeypatch.setattr(app_module, "WalkmanApp", FakeApp)

    assert cli_module.main([]) == 0
    assert cli_module.main(["--quiet"]) == 0
    assert levels == ["DEBUG", "WARNING"]
