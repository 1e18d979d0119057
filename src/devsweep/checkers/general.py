"""Checkers for the catch-all user cache directory and the trash."""

from __future__ import annotations

import logging
from pathlib import Path

from devsweep.models.checker import CheckOutput, Checker, SubdirectoryChecker
from devsweep.models.scan_result import CategoryData, CleanupItem
from devsweep.utils import path_size, xdg_cache_home, xdg_data_home

log = logging.getLogger(__name__)

# Children of ~/.cache already reported by a more specific checker.
_COVERED_ELSEWHERE = frozenset({
    "pip",
    "pypoetry",
    "uv",
    "yarn",
    "go-build",
    "Homebrew",
    "JetBrains",
    "Google",
    "fish",
    "starship",
    "zsh",
})


class GeneralCachesChecker(SubdirectoryChecker):
    """Each application cache directory over 100 MiB in ``~/.cache``."""

    category = "General Caches"
    description = "Large application caches in ~/.cache"
    _label_prefix = "cache"
    _warning = "App may need to rebuild cache"

    def _roots(self) -> list[Path]:
        return [xdg_cache_home()]

    def _excluded(self) -> set[str]:
        return set(_COVERED_ELSEWHERE)


class TrashChecker(Checker):
    """Files the user already deleted (``~/.local/share/Trash``)."""

    category = "Trash"
    description = "Files already moved to the trash"

    def _trash_dir(self) -> Path:
        return xdg_data_home() / "Trash"

    def check(self) -> CheckOutput:
        trash_dir = self._trash_dir()
        items: list[CleanupItem] = []
        tracked: list[Path] = []

        for subdir in (trash_dir / "files", trash_dir / "info"):
            if not subdir.is_dir():
                continue
            tracked.append(subdir)
            for entry in sorted(subdir.iterdir()):
                try:
                    size = path_size(entry)
                except OSError:
                    log.debug("Cannot access: %s", entry)
                    continue
                items.append(
                    CleanupItem(
                        name=f"Trash: {entry.name}",
                        size_bytes=size,
                        category=self.category,
                        path=entry,
                        safe_to_delete=True,
                    )
                )

        return CategoryData(name=self.category, items=items), tracked
