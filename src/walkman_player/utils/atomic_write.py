"""Write-then-replace file persistence shared by the JSON stores."""

from __future__ import annotations

import time
from contextlib import suppress
from pathlib import Path
from uuid import uuid4

_REPLACE_ATTEMPTS = 4


def write_text_atomic(path: Path, payload: str) -> None:
    """Write `payload` to a sibling temp file, then replace `path` with it.

    A failed write or replace leaves the previous file untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    delay_s = 0.02
    try:
        for attempt in range(_REPLACE_ATTEMPTS):
            tmp_path.write_text(payload, encoding="utf-8")
            try:
                tmp_path.replace(path)
                return
            except OSError as exc:
                if (
                    not _is_retryable_replace_error(exc)
                    or attempt >= _REPLACE_ATTEMPTS - 1
                ):
                    raise
                time.sleep(delay_s)
                delay_s = min(0.25, delay_s * 2.0)
    finally:
        with suppress(OSError):
            tmp_path.unlink()


def _is_retryable_replace_error(exc: OSError) -> bool:
    """Return whether a replace failure is likely transient (Windows file locks)."""
    winerror = getattr(exc, "winerror", None)
    if winerror in {32, 5, 2}:
        return True
    errno = getattr(exc, "errno", None)
    if errno in {13, 16}:
        return True
    text = str(exc).lower()
    return "used by another process" in text or "permission denied" in text
