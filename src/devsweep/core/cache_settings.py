"""Per-category scan cache TTLs."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from devsweep import storage

log = logging.getLogger(__name__)

# TTL for categories without a built-in default (seconds).
FALLBACK_TTL = 300

# Recommended TTLs based on how often each category changes (seconds).
DEFAULT_TTLS: dict[str, int] = {
    "Node.js/npm/yarn": 600,
    "Python": 600,
    "Rust/Cargo": 300,
    "Go": 600,
    "Java (Gradle/Maven)": 600,
    "Homebrew": 3600,
    "IDE Caches": 600,
    "Shell Caches": 300,
    "General Caches": 30,
    "Trash": 0,  # contents change constantly, never cache
    "Custom Paths": 300,
}

PRESETS: dict[str, dict[str, int]] = {
    "conservative": {
        "Node.js/npm/yarn": 300,
        "Python": 300,
        "Rust/Cargo": 120,
        "Go": 300,
        "Java (Gradle/Maven)": 300,
        "Homebrew": 600,
        "IDE Caches": 300,
        "Shell Caches": 120,
        "General Caches": 30,
        "Trash": 0,
        "Custom Paths": 120,
    },
    "balanced": dict(DEFAULT_TTLS),
    "aggressive": {
        "Node.js/npm/yarn": 1800,
        "Python": 1800,
        "Rust/Cargo": 600,
        "Go": 1800,
        "Java (Gradle/Maven)": 1800,
        "Homebrew": 7200,
        "IDE Caches": 1800,
        "Shell Caches": 600,
        "General Caches": 60,
        "Trash": 0,
        "Custom Paths": 600,
    },
}


class CacheSettingsStore:
    """Category -> TTL mapping persisted in its own JSON file.

    Only overrides are stored; unset categories report the built-in
    default. Independent of whether any scan has ever run.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or storage.CACHE_SETTINGS_FILE
        self._ttls: dict[str, int] = {}
        self._lock = threading.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get_ttl(self, category: str) -> int:
        """TTL in seconds for *category*."""
        ttl = self._ttls.get(category)
        if ttl is not None:
            return ttl
        return DEFAULT_TTLS.get(category, FALLBACK_TTL)

    def set_ttl(self, category: str, seconds: int) -> None:
        """Set and persist the TTL for *category*. Zero disables caching."""
        seconds = int(seconds)
        if seconds < 0:
            raise ValueError(f"TTL must not be negative, got {seconds}")
        with self._lock:
            self._ttls[category] = seconds
            self._save_locked()
        log.info("Cache TTL for '%s' set to %s", category, format_ttl(seconds))

    def reset_to_defaults(self) -> None:
        """Drop every override."""
        with self._lock:
            self._ttls = {}
            self._save_locked()
        log.info("Cache TTLs reset to defaults")

    def apply_preset(self, name: str) -> None:
        """Replace all overrides with a named preset.

        Raises:
            KeyError: If *name* is not one of :data:`PRESETS`.
        """
        if name not in PRESETS:
            raise KeyError(f"Unknown preset '{name}'. Available: {', '.join(PRESETS)}")
        with self._lock:
            self._ttls = dict(PRESETS[name])
            self._save_locked()
        log.info("Applied '%s' cache preset", name)

    def all_ttls(self) -> dict[str, int]:
        """Effective TTL for every known category, defaults included."""
        merged = dict(DEFAULT_TTLS)
        merged.update(self._ttls)
        return merged

    def _load(self) -> None:
        data = storage.load_json(self._path, None)
        if data is None:
            return
        ttls = data.get("category_ttls") if isinstance(data, dict) else None
        if not isinstance(ttls, dict):
            log.warning("Ignoring malformed cache settings file: %s", self._path)
            return
        for category, value in ttls.items():
            try:
                seconds = int(value)
            except (TypeError, ValueError):
                log.warning("Ignoring invalid TTL for '%s': %r", category, value)
                continue
            if seconds >= 0:
                self._ttls[category] = seconds

    def _save_locked(self) -> None:
        try:
            storage.save_json(self._path, {"category_ttls": self._ttls})
        except OSError as e:
            log.warning("Could not save cache settings to %s: %s", self._path, e)


def format_ttl(seconds: int) -> str:
    """Format a TTL as a human-readable string."""
    if seconds == 0:
        return "never cached"
    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    if seconds < 3600:
        m = seconds // 60
        return f"{m} minute{'s' if m != 1 else ''}"
    if seconds < 86400:
        h = seconds // 3600
        return f"{h} hour{'s' if h != 1 else ''}"
    d = seconds // 86400
    return f"{d} day{'s' if d != 1 else ''}"
