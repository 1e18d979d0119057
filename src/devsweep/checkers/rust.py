"""Checker for Cargo download caches."""

from __future__ import annotations

import os
from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker


def cargo_home() -> Path:
    return Path(os.environ.get("CARGO_HOME", Path.home() / ".cargo"))


class RustChecker(DirectoryChecker):
    """Downloaded crate archives and git checkouts of dependencies."""

    category = "Rust/Cargo"
    description = "Cargo registry cache and git dependency checkouts"

    def _cache_dirs(self) -> list[CacheDir]:
        root = cargo_home()
        return [
            CacheDir("Cargo registry cache", root / "registry" / "cache"),
            CacheDir("Cargo registry sources", root / "registry" / "src"),
            CacheDir("Cargo git checkouts", root / "git"),
        ]
