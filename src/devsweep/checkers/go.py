"""Checker for Go module and build caches."""

from __future__ import annotations

import os
from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.utils import xdg_cache_home


class GoChecker(DirectoryChecker):
    category = "Go"
    description = "Go module download cache and build cache"

    def _cache_dirs(self) -> list[CacheDir]:
        gopath = Path(os.environ.get("GOPATH", Path.home() / "go"))
        modcache = Path(os.environ.get("GOMODCACHE", gopath / "pkg" / "mod"))
        gocache = Path(os.environ.get("GOCACHE", xdg_cache_home() / "go-build"))
        return [
            CacheDir(
                "Go module cache",
                modcache,
                safe_to_delete=False,
                warning="Projects will need to re-download modules",
            ),
            CacheDir("Go build cache", gocache),
        ]
