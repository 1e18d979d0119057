"""Per-category cache of scan results with TTL and fingerprint validation."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from devsweep import storage
from devsweep.core.fingerprint import Fingerprint, track_paths
from devsweep.models.scan_result import CategoryData

log = logging.getLogger(__name__)

_FORMAT_VERSION = 1


@dataclass(slots=True)
class ScanCacheEntry:
    """Snapshot of one category's last successful scan."""

    category: str
    last_update: float
    ttl: int
    data: CategoryData
    fingerprints: list[Fingerprint] = field(default_factory=list)

    def age(self, now: float) -> float:
        return now - self.last_update

    def is_expired(self, now: float) -> bool:
        """TTL check. An age exactly equal to the TTL is not yet expired.

        A TTL of zero (or less) means the entry is never served from cache.
        """
        if self.ttl <= 0:
            return True
        return self.age(now) > self.ttl

    def changed_paths(self) -> list[Path]:
        """Tracked paths whose fingerprint no longer matches."""
        return [fp.path for fp in self.fingerprints if not fp.matches_filesystem()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "last_update": self.last_update,
            "ttl": self.ttl,
            "data": self.data.to_dict(),
            "fingerprints": [fp.to_dict() for fp in self.fingerprints],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanCacheEntry:
        return cls(
            category=data["category"],
            last_update=float(data["last_update"]),
            ttl=int(data["ttl"]),
            data=CategoryData.from_dict(data["data"]),
            fingerprints=[Fingerprint.from_dict(fp) for fp in data.get("fingerprints", [])],
        )


class ScanCache:
    """Cached scan results keyed by category, persisted as one JSON file.

    Writers swap in a new mapping instead of mutating the current one, and
    entries are never modified after creation, so validity checks and reads
    need no lock.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or storage.SCAN_CACHE_FILE
        self._entries: dict[str, ScanCacheEntry] = {}
        self._write_lock = threading.Lock()
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def __contains__(self, category: str) -> bool:
        return category in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def categories(self) -> list[str]:
        return list(self._entries)

    def is_valid(self, category: str, now: float | None = None) -> bool:
        """Whether the cached result for *category* can be used instead of rescanning.

        False when there is no entry, when the entry is older than its TTL,
        or when any tracked path changed since the scan. Either condition
        alone invalidates the entry.
        """
        entry = self._entries.get(category)
        if entry is None:
            return False
        now = time.time() if now is None else now
        if entry.is_expired(now):
            log.debug("Cache for '%s' expired (age %.1fs, ttl %ds)", category, entry.age(now), entry.ttl)
            return False
        changed = entry.changed_paths()
        if changed:
            log.debug("Cache for '%s' invalidated by change in %s", category, changed[0])
            return False
        return True

    def get(self, category: str) -> CategoryData | None:
        """Return a copy of the cached data, valid or not."""
        entry = self._entries.get(category)
        if entry is None:
            return None
        return CategoryData(name=entry.data.name, items=list(entry.data.items), error=entry.data.error)

    def get_valid(self, category: str, now: float | None = None) -> CategoryData | None:
        """Return the cached data only if :meth:`is_valid` holds."""
        if not self.is_valid(category, now):
            return None
        return self.get(category)

    def update(
        self,
        category: str,
        data: CategoryData,
        tracked_paths: Iterable[Path],
        ttl: int,
        now: float | None = None,
        persist: bool = True,
    ) -> ScanCacheEntry:
        """Replace the entry for *category* and persist the cache.

        The in-memory update always takes effect; a failed disk write is
        logged and does not undo it. Pass ``persist=False`` to batch several
        updates before one :meth:`save`.
        """
        entry = ScanCacheEntry(
            category=category,
            last_update=time.time() if now is None else now,
            ttl=ttl,
            data=CategoryData(name=data.name, items=list(data.items), error=data.error),
            fingerprints=track_paths(tracked_paths),
        )
        with self._write_lock:
            self._entries = {**self._entries, category: entry}
            if persist:
                self._save_locked()
        return entry

    def invalidate(self, category: str) -> None:
        """Drop the entry for *category*, if any."""
        with self._write_lock:
            if category in self._entries:
                self._entries = {k: v for k, v in self._entries.items() if k != category}
                self._save_locked()

    def clear(self) -> None:
        """Drop every entry."""
        with self._write_lock:
            self._entries = {}
            self._save_locked()

    def save(self) -> bool:
        """Persist the cache. Returns False if the write failed."""
        with self._write_lock:
            return self._save_locked()

    def _save_locked(self) -> bool:
        payload = {
            "version": _FORMAT_VERSION,
            "categories": {name: entry.to_dict() for name, entry in self._entries.items()},
        }
        try:
            storage.save_json(self._path, payload)
        except OSError as e:
            log.warning("Could not save scan cache to %s: %s", self._path, e)
            return False
        return True

    def _load(self) -> None:
        """Load the cache from disk; anything malformed counts as no cache."""
        data = storage.load_json(self._path, None)
        if data is None:
            return
        if not isinstance(data, dict) or not isinstance(data.get("categories"), dict):
            log.warning("Ignoring malformed scan cache file: %s", self._path)
            return

        entries: dict[str, ScanCacheEntry] = {}
        for name, raw in data["categories"].items():
            try:
                entries[name] = ScanCacheEntry.from_dict(raw)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                log.warning("Dropping malformed scan cache entry '%s': %s", name, e)
        self._entries = entries
        log.debug("Loaded %d cached categories from %s", len(entries), self._path)
