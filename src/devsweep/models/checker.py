"""Base checker interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from devsweep.models.scan_result import CategoryData, CleanupItem
from devsweep.utils import dir_info

log = logging.getLogger(__name__)

CheckOutput = tuple[CategoryData, list[Path]]


@dataclass(frozen=True)
class CacheDir:
    """A directory a checker looks at, and how to describe it."""

    label: str
    path: Path
    safe_to_delete: bool = True
    warning: str = ""


class Checker(ABC):
    """Base class for all checkers.

    A checker knows which paths belong to one tool and reports their
    sizes. It is stateless: it never deletes anything, never caches,
    and never talks to other checkers.
    """

    @property
    @abstractmethod
    def category(self) -> str:
        """Category name, e.g. 'Rust/Cargo'. Unique per registry."""

    @property
    def description(self) -> str:
        """What this checker reports."""
        return ""

    @abstractmethod
    def check(self) -> CheckOutput:
        """Scan for reclaimable items. MUST NOT delete anything.

        Returns:
            The category data and the paths that were examined, which the
            scan cache fingerprints to detect later changes.
        """

    def _item(self, target: CacheDir, size: int) -> CleanupItem:
        return CleanupItem(
            name=target.label,
            size_bytes=size,
            category=self.category,
            path=target.path,
            safe_to_delete=target.safe_to_delete,
            warning=target.warning,
        )


class DirectoryChecker(Checker, ABC):
    """Base class for checkers that report a fixed set of cache directories.

    Subclasses define ``category`` and ``_cache_dirs``. Each existing
    directory whose size reaches ``_min_bytes`` becomes one item.
    """

    _min_bytes: int = 1

    @abstractmethod
    def _cache_dirs(self) -> list[CacheDir]:
        """Candidate directories; missing ones are skipped."""

    def check(self) -> CheckOutput:
        items: list[CleanupItem] = []
        tracked: list[Path] = []
        seen: set[Path] = set()

        for target in self._cache_dirs():
            if target.path in seen or not target.path.is_dir():
                continue
            seen.add(target.path)
            size, _ = dir_info(target.path)
            tracked.append(target.path)
            if size >= self._min_bytes:
                items.append(self._item(target, size))

        return CategoryData(name=self.category, items=items), tracked


class SubdirectoryChecker(Checker, ABC):
    """Base class for checkers that report each large child of some roots.

    Used for catch-all locations like ``~/.cache`` where every
    subdirectory belongs to a different application.
    """

    _min_bytes: int = 100 * 1024 * 1024
    _label_prefix: str = "cache"
    _warning: str = ""
    _safe_to_delete: bool = False

    @abstractmethod
    def _roots(self) -> list[Path]:
        """Directories whose children are reported."""

    def _excluded(self) -> set[str]:
        """Child names to skip, e.g. caches another checker already covers."""
        return set()

    def check(self) -> CheckOutput:
        found: list[tuple[int, CacheDir]] = []
        tracked: list[Path] = []
        excluded = self._excluded()

        for root in self._roots():
            if not root.is_dir():
                continue
            tracked.append(root)
            try:
                children = sorted(root.iterdir())
            except OSError:
                log.debug("Cannot read %s", root)
                continue
            for child in children:
                if child.name in excluded or child.is_symlink() or not child.is_dir():
                    continue
                size, _ = dir_info(child)
                if size < self._min_bytes:
                    continue
                target = CacheDir(
                    label=f"{self._label_prefix}: {child.name}",
                    path=child,
                    safe_to_delete=self._safe_to_delete,
                    warning=self._warning,
                )
                found.append((size, target))
                tracked.append(child)

        found.sort(key=lambda pair: pair[0], reverse=True)
        items = [self._item(target, size) for size, target in found]
        return CategoryData(name=self.category, items=items), tracked
