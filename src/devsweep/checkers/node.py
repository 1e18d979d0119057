"""Checker for Node.js package manager caches."""

from __future__ import annotations

import logging
from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.utils import has_command, run_command, xdg_cache_home

log = logging.getLogger(__name__)


class NodeChecker(DirectoryChecker):
    """npm, Yarn, pnpm and Bun caches, plus the global node_modules."""

    category = "Node.js/npm/yarn"
    description = "Package manager caches and globally installed packages"

    def _cache_dirs(self) -> list[CacheDir]:
        home = Path.home()
        dirs = [
            CacheDir("npm cache", home / ".npm" / "_cacache"),
            CacheDir("Yarn cache", xdg_cache_home() / "yarn"),
            CacheDir("pnpm store", home / ".local" / "share" / "pnpm" / "store"),
            CacheDir("Bun cache", home / ".bun" / "install" / "cache"),
        ]
        global_modules = self._global_modules()
        if global_modules is not None:
            dirs.append(
                CacheDir(
                    "Global node_modules",
                    global_modules,
                    safe_to_delete=False,
                    warning="Contains globally installed packages - review before cleaning",
                )
            )
        return dirs

    def _global_modules(self) -> Path | None:
        if not has_command("npm"):
            return None
        out = run_command(["npm", "root", "-g"])
        if not out:
            log.debug("npm root -g returned nothing")
            return None
        return Path(out)
