"""JSON file storage for the scan cache, TTL settings and cleanup history.

All persisted state lives in one application-data directory. Each file is
read and replaced as a whole; writes go to a temporary file in the same
directory which is then renamed over the target, so a reader never sees a
half-written file.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from devsweep.utils import xdg_data_home

log = logging.getLogger(__name__)

_DATA_DIR = xdg_data_home() / "devsweep"

SCAN_CACHE_FILE = _DATA_DIR / "scan_cache.json"
CACHE_SETTINGS_FILE = _DATA_DIR / "cache_settings.json"
HISTORY_FILE = _DATA_DIR / "cleanup_history.json"
QUARANTINE_DIR = _DATA_DIR / "quarantine"


def load_json(path: Path, default: Any) -> Any:
    """Load a JSON document, returning *default* if missing or unreadable.

    A corrupted file is never fatal: it is logged and treated as absent.
    """
    if not path.exists():
        return default
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError):
        log.exception("Failed to load %s, starting from empty state", path)
        return default


def save_json(path: Path, data: Any) -> None:
    """Atomically replace *path* with the JSON encoding of *data*.

    Raises:
        OSError: If the file cannot be written. The previous content of
            *path* is left untouched in that case.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except (OSError, TypeError, ValueError):
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise
