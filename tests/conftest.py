"""Shared test fixtures."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

import devsweep.storage as storage
from devsweep.core.registry import CheckerRegistry
from devsweep.models.checker import CheckOutput, Checker
from devsweep.models.scan_result import CategoryData, CleanupItem
from devsweep.settings import Settings


@pytest.fixture
def isolate_storage(tmp_path, monkeypatch):
    """Redirect every persisted file and XDG directory into a temp directory."""
    data_dir = tmp_path / "devsweep_data"
    data_dir.mkdir()
    monkeypatch.setattr(storage, "_DATA_DIR", data_dir)
    monkeypatch.setattr(storage, "SCAN_CACHE_FILE", data_dir / "scan_cache.json")
    monkeypatch.setattr(storage, "CACHE_SETTINGS_FILE", data_dir / "cache_settings.json")
    monkeypatch.setattr(storage, "HISTORY_FILE", data_dir / "cleanup_history.json")
    monkeypatch.setattr(storage, "QUARANTINE_DIR", data_dir / "quarantine")

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    monkeypatch.setattr(Settings, "_instance", None)
    return data_dir


@pytest.fixture
def home(isolate_storage) -> Path:
    return Path.home()


class FakeChecker(Checker):
    """Checker that reports files under a directory without scanning anything else."""

    def __init__(self, category: str, root: Path | None = None, fail: bool = False, delay: float = 0) -> None:
        self._category = category
        self.root = root
        self.fail = fail
        self.delay = delay
        self.calls = 0

    @property
    def category(self) -> str:
        return self._category

    def check(self) -> CheckOutput:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("checker exploded")
        items: list[CleanupItem] = []
        tracked: list[Path] = []
        if self.root is not None and self.root.is_dir():
            tracked.append(self.root)
            for child in sorted(self.root.iterdir()):
                items.append(
                    CleanupItem(
                        name=child.name,
                        size_bytes=child.stat().st_size if child.is_file() else 100,
                        category=self._category,
                        path=child,
                        safe_to_delete=True,
                    )
                )
        else:
            items.append(CleanupItem(name=f"{self._category} item", size_bytes=1024, category=self._category))
        return CategoryData(name=self._category, items=items), tracked


@pytest.fixture
def make_registry():
    def _make(*checkers: Checker) -> CheckerRegistry:
        registry = CheckerRegistry()
        for checker in checkers:
            registry.register(checker)
        return registry

    return _make


@pytest.fixture
def fake_checker():
    return FakeChecker
