"""Checker for Python package caches and interpreter installs."""

from __future__ import annotations

from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.utils import xdg_cache_home

_CONDA_DIRS = ("miniconda3", "anaconda3", "miniforge3", "mambaforge")


class PythonChecker(DirectoryChecker):
    """pip, Poetry and uv caches; pyenv versions, virtualenvs and Conda."""

    category = "Python"
    description = "Package caches, pyenv versions, virtualenvs and Conda installs"

    def _cache_dirs(self) -> list[CacheDir]:
        home = Path.home()
        cache = xdg_cache_home()
        dirs = [
            CacheDir("pip cache", cache / "pip"),
            CacheDir("Poetry cache", cache / "pypoetry"),
            CacheDir("uv cache", cache / "uv"),
            CacheDir(
                "pyenv versions",
                home / ".pyenv" / "versions",
                safe_to_delete=False,
                warning="Contains Python versions - review before removing",
            ),
            CacheDir(
                "virtualenvs",
                home / ".virtualenvs",
                safe_to_delete=False,
                warning="Contains virtual environments - review before removing",
            ),
        ]
        for name in _CONDA_DIRS:
            dirs.append(
                CacheDir(
                    f"Conda ({name})",
                    home / name,
                    safe_to_delete=False,
                    warning="Full Conda installation - use 'conda clean --all' to clean caches",
                )
            )
        return dirs
