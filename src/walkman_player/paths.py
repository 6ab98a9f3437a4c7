"""Per-user file locations (playlist blob, settings, logs)."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from platformdirs import AppDirs

DEFAULT_APP_NAME = "walkman-player"


@dataclass(frozen=True)
class AppPaths:
    """Resolved on-disk locations used by one running player."""

    data_dir: Path
    config_dir: Path

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def playlist_file(self) -> Path:
        return self.data_dir / "playlist.json"

    @property
    def state_file(self) -> Path:
        return self.config_dir / "state.json"

    def ensure(self) -> AppPaths:
        """Create the backing directories and return self."""
        for path in (self.data_dir, self.config_dir, self.log_dir):
            path.mkdir(parents=True, exist_ok=True)
        return self

    @classmethod
    def rooted_at(cls, root: Path) -> AppPaths:
        """Keep everything under a single directory (tests, portable installs)."""
        return cls(data_dir=root / "data", config_dir=root / "config")


@lru_cache(maxsize=4)
def default_paths(app_name: str = DEFAULT_APP_NAME) -> AppPaths:
    """Return platform-specific app paths, creating directories on first use."""
    dirs = AppDirs(app_name)
    return AppPaths(
        data_dir=Path(dirs.user_data_dir),
        config_dir=Path(dirs.user_config_dir),
    ).ensure()
