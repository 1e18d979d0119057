"""Scan orchestration engine."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from devsweep.core.cache_settings import CacheSettingsStore
from devsweep.core.registry import CheckerRegistry
from devsweep.core.scan_cache import ScanCache
from devsweep.models.checker import Checker
from devsweep.models.scan_result import CategoryData

log = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]  # (category, status)

# Checkers block on filesystem I/O, so a few more threads than cores is fine.
_OVERSUBSCRIPTION = 2
_MAX_WORKERS_CAP = 32


def default_max_workers() -> int:
    return min(_MAX_WORKERS_CAP, (os.cpu_count() or 1) * _OVERSUBSCRIPTION)


class ScanOrchestrator:
    """Runs every registered checker, reusing cached results where valid.

    Each category independently comes either from the scan cache or from
    a fresh checker run. Checker runs happen on a bounded thread pool and
    are isolated from each other: an exception in one checker yields an
    empty, errored category and never affects its siblings.

    ``clock`` returns the current time in epoch seconds; cache ages are
    measured against it.
    """

    def __init__(
        self,
        registry: CheckerRegistry,
        cache: ScanCache,
        cache_settings: CacheSettingsStore,
        max_workers: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.cache_settings = cache_settings
        self.max_workers = max(1, max_workers or default_max_workers())
        self._clock = clock
        self._scan_lock = threading.Lock()
        self._last_results: list[CategoryData] = []

    def scan(
        self,
        use_cache: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> list[CategoryData]:
        """Scan all categories and return them in canonical order.

        Blocks until every checker has finished. Concurrent calls are
        serialized, so abandoned scans cannot pile up worker threads.

        Args:
            use_cache: Serve categories from the scan cache when still valid.
            on_progress: Optional callback receiving ``(category, status)``
                with status ``cached``, ``scanning``, ``done`` or ``error``.

        Returns:
            One CategoryData per registered checker.
        """
        with self._scan_lock:
            checkers = self.registry.get_all()
            now = self._clock()
            results: dict[str, CategoryData] = {}
            to_run: list[Checker] = []

            for checker in checkers:
                cached = self.cache.get_valid(checker.category, now=now) if use_cache else None
                if cached is not None:
                    results[checker.category] = cached
                    if on_progress:
                        on_progress(checker.category, "cached")
                else:
                    to_run.append(checker)

            if use_cache and len(to_run) < len(checkers):
                log.info("Using cached results for %d categories", len(checkers) - len(to_run))

            if to_run:
                if self.max_workers > 1 and len(to_run) > 1:
                    fresh = self._scan_parallel(to_run, on_progress)
                else:
                    fresh = self._scan_sequential(to_run, on_progress)
                results.update(fresh)
                self.cache.save()

            ordered = [results[checker.category] for checker in checkers]
            self._last_results = ordered
            return ordered

    def last_results(self) -> list[CategoryData]:
        """Result of the most recent scan."""
        return list(self._last_results)

    def _scan_sequential(
        self,
        checkers: list[Checker],
        on_progress: ProgressCallback | None,
    ) -> dict[str, CategoryData]:
        """Run checkers one at a time."""
        return {checker.category: self._run_checker(checker, on_progress) for checker in checkers}

    def _scan_parallel(
        self,
        checkers: list[Checker],
        on_progress: ProgressCallback | None,
    ) -> dict[str, CategoryData]:
        """Run checkers concurrently and wait for all of them."""
        max_workers = min(self.max_workers, len(checkers))
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="devsweep-scan") as executor:
            futures = {
                checker.category: executor.submit(self._run_checker, checker, on_progress)
                for checker in checkers
            }
            return {category: future.result() for category, future in futures.items()}

    def _run_checker(self, checker: Checker, on_progress: ProgressCallback | None) -> CategoryData:
        """Run one checker inside its failure boundary and cache a good result."""
        category = checker.category
        if on_progress:
            on_progress(category, "scanning")
        try:
            data, tracked_paths = checker.check()
            if data.name != category:
                raise ValueError(f"checker returned category '{data.name}'")
        except Exception as e:
            log.exception("Checker '%s' failed during scan", category)
            if on_progress:
                on_progress(category, "error")
            return CategoryData(name=category, error=f"{type(e).__name__}: {e}")

        # Fingerprint right away so changes made after the scan are noticed.
        self.cache.update(
            category,
            data,
            tracked_paths,
            ttl=self.cache_settings.get_ttl(category),
            now=self._clock(),
            persist=False,
        )
        if on_progress:
            on_progress(category, "done")
        return data
