"""Generic JSON-backed application settings."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from devsweep.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "devsweep"
_SETTINGS_FILE = "settings.json"

GIB = 1024 ** 3

DEFAULTS: dict[str, Any] = {
    "quarantine": {
        "capacity_bytes": 10 * GIB,
        "max_records": 50,
        "lock_timeout": 10.0,
    },
    "scan": {
        "max_workers": min(32, (os.cpu_count() or 1) * 2),
        "custom_paths": [],
    },
}


class Settings:
    """Persistent settings backed by a JSON file.

    Uses dot-notation keys for nested access:
        settings.get("quarantine.capacity_bytes")  # reads data["quarantine"]["capacity_bytes"]
        settings.set("scan.custom_paths", ["~/builds"])  # writes + saves

    Keys missing from the file fall back to :data:`DEFAULTS`.
    """

    _instance: Settings | None = None

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, Any] = {}
        self._load()

    @classmethod
    def instance(cls) -> Settings:
        """Return the singleton settings instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dot-notation key."""
        value = _lookup(self._data, key)
        if value is not None:
            return value
        value = _lookup(DEFAULTS, key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Set a value by dot-notation key and persist to disk."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            if part not in node or not isinstance(node[part], dict):
                node[part] = {}
            node = node[part]
        node[parts[-1]] = value
        self._save()

    def get_int(self, key: str) -> int:
        """Get an integer setting, falling back to the default on bad values."""
        value = self.get(key)
        try:
            return int(value)
        except (TypeError, ValueError):
            log.warning("Invalid value for %s: %r, using default", key, value)
            return int(_lookup(DEFAULTS, key))

    def get_float(self, key: str) -> float:
        """Get a float setting, falling back to the default on bad values."""
        value = self.get(key)
        try:
            return float(value)
        except (TypeError, ValueError):
            log.warning("Invalid value for %s: %r, using default", key, value)
            return float(_lookup(DEFAULTS, key))

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if isinstance(data, dict):
            self._data = data
        else:
            log.warning("Ignoring settings file %s: not a JSON object", self._path)

    def _save(self) -> None:
        """Persist settings to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)


def _lookup(data: dict[str, Any], key: str) -> Any:
    node: Any = data
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node
