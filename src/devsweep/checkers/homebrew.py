"""Checker for the Homebrew download cache."""

from __future__ import annotations

from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.utils import has_command, run_command, xdg_cache_home


class HomebrewChecker(DirectoryChecker):
    category = "Homebrew"
    description = "Downloaded bottles and source archives"

    def _cache_dirs(self) -> list[CacheDir]:
        dirs = [CacheDir("Homebrew cache", xdg_cache_home() / "Homebrew")]
        if has_command("brew"):
            out = run_command(["brew", "--cache"])
            if out:
                dirs.insert(0, CacheDir("Homebrew cache", Path(out)))
        return dirs
