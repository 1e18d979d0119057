"""Checker for Gradle and Maven caches."""

from __future__ import annotations

from pathlib import Path

from devsweep.models.checker import CacheDir, DirectoryChecker


class JavaChecker(DirectoryChecker):
    category = "Java (Gradle/Maven)"
    description = "Gradle caches and distributions, local Maven repository"

    def _cache_dirs(self) -> list[CacheDir]:
        home = Path.home()
        return [
            CacheDir(
                "Gradle caches",
                home / ".gradle" / "caches",
                safe_to_delete=False,
                warning="Next build will need to re-download dependencies",
            ),
            CacheDir(
                "Gradle wrapper distributions",
                home / ".gradle" / "wrapper" / "dists",
                safe_to_delete=False,
                warning="Contains Gradle distributions - projects may re-download",
            ),
            CacheDir(
                "Maven repository",
                home / ".m2" / "repository",
                safe_to_delete=False,
                warning="Local Maven cache - projects may re-download dependencies",
            ),
        ]
