"""Checker for editor and IDE caches."""

from __future__ import annotations

import logging
from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.utils import xdg_cache_home, xdg_config_home

log = logging.getLogger(__name__)

_VSCODE_DIRS = (
    ("Cache", "VSCode cache"),
    ("CachedData", "VSCode cached data"),
    ("CachedExtensionVSIXs", "VSCode extension downloads"),
    ("User/workspaceStorage", "VSCode workspace storage"),
)


class IdeChecker(DirectoryChecker):
    """VSCode caches and one item per JetBrains / Android Studio product.

    JetBrains IDEs keep their caches in ``~/.cache/JetBrains/<Product><Version>``
    and regenerate them when needed.
    """

    category = "IDE Caches"
    description = "VSCode, JetBrains and Android Studio caches"

    def _cache_dirs(self) -> list[CacheDir]:
        code = xdg_config_home() / "Code"
        dirs = [CacheDir(label, code / sub) for sub, label in _VSCODE_DIRS]
        dirs += self._product_dirs(xdg_cache_home() / "JetBrains", "JetBrains")
        dirs += self._product_dirs(xdg_cache_home() / "Google", "Android Studio", prefix="AndroidStudio")
        return dirs

    def _product_dirs(self, root: Path, vendor: str, prefix: str = "") -> list[CacheDir]:
        if not root.is_dir():
            return []
        try:
            children = sorted(root.iterdir())
        except OSError:
            log.debug("Cannot read %s", root)
            return []
        return [
            CacheDir(f"{vendor}: {child.name}", child)
            for child in children
            if child.is_dir() and child.name.startswith(prefix)
        ]
