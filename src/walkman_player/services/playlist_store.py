"""JSON-blob playlist persistence.

The playlist is a single ordered list of track descriptors written after every
mutation (last write wins). The public API is async; file IO is dispatched
through `run_blocking(...)` so the event loop stays responsive.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from walkman_player.media_formats import display_name, is_audio_source
from walkman_player.utils.async_utils import run_blocking
from walkman_player.utils.atomic_write import write_text_atomic

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


@dataclass(frozen=True)
class Track:
    """Immutable track descriptor; `source` is an opaque handle (file path)."""

    id: str
    name: str
    source: str


@dataclass(frozen=True)
class IngestEntry:
    """One candidate file offered for ingestion."""

    name: str
    source: str


def new_track_id() -> str:
    return uuid4().hex


def tracks_from_entries(entries: Iterable[IngestEntry | str | Path]) -> list[Track]:
    """Build tracks from ingestion entries, silently skipping non-audio ones."""
    tracks: list[Track] = []
    for entry in entries:
        if isinstance(entry, IngestEntry):
            name, source = entry.name, entry.source
        else:
            source = str(entry)
            name = Path(source).name
        if not is_audio_source(name):
            logger.debug("Skipping non-audio entry %s", name)
            continue
        tracks.append(Track(id=new_track_id(), name=display_name(name), source=source))
    return tracks


def encode_playlist(tracks: Iterable[Track]) -> str:
    payload = {
        "version": FORMAT_VERSION,
        "tracks": [
            {"id": track.id, "name": track.name, "source": track.source}
            for track in tracks
        ],
    }
    return json.dumps(payload, indent=2)


def decode_playlist(raw: str) -> tuple[Track, ...]:
    """Decode a playlist blob; malformed data yields an empty playlist.

    Accepts both the versioned object form and a bare list of entries.
    Entries missing fields are skipped; duplicate ids keep the first entry.
    """
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Playlist data is invalid JSON; starting empty.")
        return ()
    if isinstance(data, dict):
        data = data.get("tracks")
    if not isinstance(data, list):
        logger.warning("Playlist data has unexpected shape; starting empty.")
        return ()

    tracks: list[Track] = []
    seen: set[str] = set()
    skipped = 0
    for item in data:
        track = _track_from_json(item)
        if track is None or track.id in seen:
            skipped += 1
            continue
        seen.add(track.id)
        tracks.append(track)
    if skipped:
        logger.warning("Skipped %d malformed or duplicate playlist entries.", skipped)
    return tuple(tracks)


def _track_from_json(item: Any) -> Track | None:
    if not isinstance(item, dict):
        return None
    track_id = item.get("id")
    name = item.get("name")
    source = item.get("source")
    # Older blobs stored numeric ids.
    if isinstance(track_id, (int, float)) and not isinstance(track_id, bool):
        track_id = repr(track_id)
    if not isinstance(track_id, str) or not track_id:
        return None
    if not isinstance(name, str) or not isinstance(source, str) or not source:
        return None
    return Track(id=track_id, name=name, source=source)


class PlaylistStore:
    """Owns the ordered playlist and its on-disk blob."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._tracks: tuple[Track, ...] = ()

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._tracks

    def __len__(self) -> int:
        return len(self._tracks)

    def get(self, index: int | None) -> Track | None:
        if index is None or not 0 <= index < len(self._tracks):
            return None
        return self._tracks[index]

    def index_of(self, track_id: str) -> int | None:
        for index, track in enumerate(self._tracks):
            if track.id == track_id:
                return index
        return None

    async def load(self) -> tuple[Track, ...]:
        self._tracks = await run_blocking(self._load_sync)
        logger.info("Loaded %d playlist tracks from %s", len(self._tracks), self._path)
        return self._tracks

    async def save(self) -> None:
        tracks = self._tracks
        try:
            await run_blocking(self._save_sync, tracks)
        except OSError as exc:
            logger.warning("Failed to save playlist to %s: %s", self._path, exc)

    async def append(self, tracks: Iterable[Track]) -> tuple[Track, ...]:
        """Append tracks (ids already present are ignored) and persist."""
        known = {track.id for track in self._tracks}
        added = []
        for track in tracks:
            if track.id in known:
                continue
            known.add(track.id)
            added.append(track)
        if added:
            self._tracks = (*self._tracks, *added)
            await self.save()
        return tuple(added)

    async def remove(self, track_id: str) -> tuple[int, Track] | None:
        """Remove a track by id and persist; returns its former index."""
        index = self.index_of(track_id)
        if index is None:
            return None
        removed = self._tracks[index]
        self._tracks = self._tracks[:index] + self._tracks[index + 1 :]
        await self.save()
        return index, removed

    def _load_sync(self) -> tuple[Track, ...]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ()
        except OSError as exc:
            logger.warning("Failed to read playlist %s: %s", self._path, exc)
            return ()
        return decode_playlist(raw)

    def _save_sync(self, tracks: tuple[Track, ...]) -> None:
        write_text_atomic(self._path, encode_playlist(tracks))
