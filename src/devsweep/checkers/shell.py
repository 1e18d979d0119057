"""Checker for shell framework and prompt caches."""

from __future__ import annotations

from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.utils import xdg_cache_home, xdg_config_home


class ShellChecker(DirectoryChecker):
    category = "Shell Caches"
    description = "Oh My Zsh, zsh/bash sessions, fish and starship caches"

    def _cache_dirs(self) -> list[CacheDir]:
        home = Path.home()
        return [
            CacheDir("Oh My Zsh cache", home / ".oh-my-zsh" / "cache"),
            CacheDir("Zsh sessions", home / ".zsh_sessions"),
            CacheDir("Bash sessions", home / ".bash_sessions"),
            CacheDir("Fish cache (config)", xdg_config_home() / "fish" / "cache"),
            CacheDir("Fish cache", xdg_cache_home() / "fish"),
            CacheDir("Starship cache", xdg_cache_home() / "starship"),
            CacheDir("Zsh cache", xdg_cache_home() / "zsh"),
        ]
