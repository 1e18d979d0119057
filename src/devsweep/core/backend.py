"""Composition root tying scanning, caching and quarantine together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from devsweep.checkers import custom
from devsweep.checkers.custom import CustomPath, CustomPathsChecker
from devsweep.core.cache_settings import CacheSettingsStore
from devsweep.core.engine import ProgressCallback, ScanOrchestrator
from devsweep.core.quarantine import HistoryStats, QuarantineStore
from devsweep.core.registry import CheckerRegistry, default_registry
from devsweep.core.scan_cache import ScanCache
from devsweep.models.quarantine import CleanupRecord, ItemOutcome
from devsweep.models.scan_result import CategoryData, CleanupItem
from devsweep.settings import Settings

log = logging.getLogger(__name__)


class Backend:
    """Owns the scan cache, TTL settings and quarantine for the process lifetime.

    Front ends (CLI, D-Bus service) talk only to this class. Any component
    can be injected; the rest are built from :class:`Settings`.
    """

    def __init__(
        self,
        registry: CheckerRegistry | None = None,
        settings: Settings | None = None,
        scan_cache: ScanCache | None = None,
        cache_settings: CacheSettingsStore | None = None,
        quarantine: QuarantineStore | None = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings.instance()
        self.registry = registry if registry is not None else default_registry(self.settings)
        self.scan_cache = scan_cache if scan_cache is not None else ScanCache()
        self.cache_settings = cache_settings if cache_settings is not None else CacheSettingsStore()
        self.quarantine = quarantine if quarantine is not None else QuarantineStore(
            capacity_bytes=self.settings.get_int("quarantine.capacity_bytes"),
            max_records=self.settings.get_int("quarantine.max_records"),
            lock_timeout=self.settings.get_float("quarantine.lock_timeout"),
        )
        self.orchestrator = ScanOrchestrator(
            self.registry,
            self.scan_cache,
            self.cache_settings,
            max_workers=self.settings.get_int("scan.max_workers"),
        )

    # ── scanning ─────────────────────────────────────────────────────────

    def scan(self, use_cache: bool = True, on_progress: ProgressCallback | None = None) -> list[CategoryData]:
        return self.orchestrator.scan(use_cache=use_cache, on_progress=on_progress)

    def last_results(self) -> list[CategoryData]:
        return self.orchestrator.last_results()

    def total_reclaimable(self) -> int:
        """Bytes reported by the most recent scan."""
        return sum(c.total_bytes for c in self.orchestrator.last_results())

    def select_items(
        self,
        categories: Iterable[str] | None = None,
        paths: Iterable[str] | None = None,
    ) -> list[CleanupItem]:
        """Pick items from the most recent scan by category name and/or path.

        With neither filter, every item of the last scan is returned.
        """
        wanted_categories = set(categories) if categories is not None else None
        wanted_paths = set(paths) if paths is not None else None
        selected = []
        for data in self.orchestrator.last_results():
            if wanted_categories is not None and data.name not in wanted_categories:
                continue
            for item in data.items:
                if wanted_paths is not None and str(item.path) not in wanted_paths:
                    continue
                selected.append(item)
        return selected

    # ── cleanup & quarantine ─────────────────────────────────────────────

    def cleanup(self, items: list[CleanupItem], use_quarantine: bool = True) -> CleanupRecord:
        """Clean *items* and drop the cached scans they came from."""
        record = self.quarantine.quarantine(items, use_quarantine=use_quarantine)
        for category in sorted({item.category for item in items}):
            self.scan_cache.invalidate(category)
            log.debug("Invalidated cached scan of '%s' after cleanup", category)
        return record

    def restore(self, record_id: str) -> list[ItemOutcome]:
        """Restore a record. Restored files may belong to any category, so the whole scan cache is cleared."""
        outcomes = self.quarantine.restore(record_id)
        self.scan_cache.clear()
        return outcomes

    def delete_permanent(self, record_id: str, item_index: int) -> ItemOutcome:
        return self.quarantine.delete_permanent(record_id, item_index)

    def records(self) -> list[CleanupRecord]:
        return self.quarantine.records()

    def quarantine_stats(self) -> HistoryStats:
        return self.quarantine.stats()

    def clear_quarantine(self) -> int:
        return self.quarantine.clear_all()

    # ── TTL settings ─────────────────────────────────────────────────────

    def get_ttl(self, category: str) -> int:
        return self.cache_settings.get_ttl(category)

    def set_ttl(self, category: str, seconds: int) -> None:
        self.cache_settings.set_ttl(category, seconds)

    def reset_to_defaults(self) -> None:
        self.cache_settings.reset_to_defaults()

    def all_ttls(self) -> dict[str, int]:
        return self.cache_settings.all_ttls()

    def apply_preset(self, name: str) -> None:
        self.cache_settings.apply_preset(name)

    # ── custom paths ─────────────────────────────────────────────────────

    def custom_paths(self) -> list[CustomPath]:
        return custom.custom_paths(self.settings)

    def add_custom_path(self, path: str | Path, label: str = "") -> CustomPath:
        """Add a directory to scan. Raises :class:`CustomPathError` if missing or duplicate."""
        entry = custom.add_custom_path(self.settings, path, label)
        self._custom_paths_changed()
        return entry

    def remove_custom_path(self, index: int) -> CustomPath:
        entry = custom.remove_custom_path(self.settings, index)
        self._custom_paths_changed()
        return entry

    def toggle_custom_path(self, index: int) -> CustomPath:
        entry = custom.toggle_custom_path(self.settings, index)
        self._custom_paths_changed()
        return entry

    def _custom_paths_changed(self) -> None:
        # The cached entry only fingerprints directories configured at scan time.
        self.scan_cache.invalidate(CustomPathsChecker.category)
