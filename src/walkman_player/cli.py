"""Command-line entry point for walkman-player."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .logging_utils import setup_logging
from .paths import default_paths
from .runtime_config import PLAYBACK_BACKENDS, resolve_log_level
from .state_store import load_state
from .version import build_help_epilog


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="walkman-player",
        description="Terminal music player synced with a hardware remote.",
        epilog=build_help_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument(
        "--backend",
        choices=PLAYBACK_BACKENDS,
        help="Playback backend to use (fake or vlc).",
    )
    parser.add_argument(
        "--relay-url",
        help="Remote relay URL (overrides WALKMAN_BACKEND_URL and saved settings).",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Do not connect to the remote relay.",
    )
    parser.add_argument(
        "--visualizer-fps",
        type=int,
        help="Spectrum sampling rate while playing (clamped to 5-60).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = logging.getLogger(__name__)
    try:
        paths = default_paths()
        settings = load_state(paths.state_file)
        level = resolve_log_level(
            verbose=args.verbose, quiet=args.quiet, configured=settings.log_level
        )
        setup_logging(
            log_dir=paths.log_dir,
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=False,
        )
        logger.info("Starting walkman-player", extra={"version": __version__})
        from .app import WalkmanApp

        WalkmanApp(
            backend_name=args.backend,
            relay_url=args.relay_url,
            offline=args.offline,
            visualizer_fps=args.visualizer_fps,
        ).run()
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Fatal startup error: %s", exc)
        print(
            "Startup failed. Verify backend/settings/log paths and re-run with --verbose.",
            file=sys.stderr,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
