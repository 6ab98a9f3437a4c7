"""Audio-content detection for file ingestion."""

from __future__ import annotations

import mimetypes
from pathlib import Path, PurePath

AUDIO_EXTENSIONS = frozenset(
    {
        ".aac",
        ".aiff",
        ".alac",
        ".flac",
        ".m4a",
        ".mka",
        ".mp2",
        ".mp3",
        ".oga",
        ".ogg",
        ".opus",
        ".wav",
        ".weba",
        ".wma",
    }
)
"""Suffixes treated as audio even when the platform MIME table misses them."""


def guess_mime_type(name: str) -> str | None:
    mime, _encoding = mimetypes.guess_type(name, strict=False)
    return mime


def is_audio_source(name: str) -> bool:
    """Return whether a file name/path denotes audio content (`audio/*`)."""
    mime = guess_mime_type(name)
    if mime is not None and mime.startswith("audio/"):
        return True
    return PurePath(name).suffix.lower() in AUDIO_EXTENSIONS


def display_name(name: str) -> str:
    """Strip directories and the final extension: `dir/Song.live.mp3` -> `Song.live`."""
    base = PurePath(name).name
    stem, dot, _suffix = base.rpartition(".")
    if not dot or not stem:
        return base
    return stem


def expand_audio_paths(path: Path) -> list[Path]:
    """Expand a file or folder into audio files, folders walked recursively."""
    if path.is_file():
        return [path] if is_audio_source(path.name) else []
    if not path.is_dir():
        return []
    found = [
        candidate
        for candidate in path.rglob("*")
        if candidate.is_file() and is_audio_source(candidate.name)
    ]
    return sorted(found, key=lambda item: str(item).lower())
