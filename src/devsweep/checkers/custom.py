"""User-configured directories: the checker and the list it reads."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from devsweep.models.checker import CacheDir, DirectoryChecker
from devsweep.settings import Settings

log = logging.getLogger(__name__)

SETTINGS_KEY = "scan.custom_paths"


class CustomPathError(ValueError):
    """A custom path cannot be added, removed or toggled."""


@dataclass(frozen=True)
class CustomPath:
    """One entry of ``scan.custom_paths``."""

    path: Path
    label: str = ""
    enabled: bool = True

    @property
    def display_label(self) -> str:
        return self.label or self.path.name or str(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {"path": str(self.path), "label": self.label, "enabled": self.enabled}


class CustomPathsChecker(DirectoryChecker):
    """Directories listed under ``scan.custom_paths`` in the settings.

    Each entry is either a path string or an object with ``path`` and
    optional ``label`` and ``enabled`` keys.
    """

    category = "Custom Paths"
    description = "User-configured directories"

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    def _cache_dirs(self) -> list[CacheDir]:
        settings = self._settings or Settings.instance()
        return [
            CacheDir(
                label=entry.display_label,
                path=entry.path,
                safe_to_delete=False,
                warning="User-configured custom path",
            )
            for entry in custom_paths(settings)
            if entry.enabled
        ]


def custom_paths(settings: Settings) -> list[CustomPath]:
    """All configured entries, enabled or not. Invalid entries are skipped."""
    raw = settings.get(SETTINGS_KEY, [])
    if not isinstance(raw, list):
        log.warning("Ignoring %s: expected a list, got %r", SETTINGS_KEY, raw)
        return []
    entries = []
    for item in raw:
        entry = _parse_entry(item)
        if entry is not None:
            entries.append(entry)
    return entries


def add_custom_path(settings: Settings, path: str | Path, label: str = "") -> CustomPath:
    """Append a directory to the custom paths.

    Raises:
        CustomPathError: If the path is not an existing directory or is
            already configured.
    """
    resolved = Path(path).expanduser().resolve()
    if not resolved.exists():
        raise CustomPathError(f"Path does not exist: {resolved}")
    if not resolved.is_dir():
        raise CustomPathError(f"Not a directory: {resolved}")

    entries = custom_paths(settings)
    if any(e.path.resolve() == resolved for e in entries):
        raise CustomPathError(f"Path already added: {resolved}")

    entry = CustomPath(path=resolved, label=label)
    _save(settings, entries + [entry])
    log.info("Added custom path %s", resolved)
    return entry


def remove_custom_path(settings: Settings, index: int) -> CustomPath:
    """Remove the entry at *index*.

    Raises:
        CustomPathError: If *index* is out of range.
    """
    entries = custom_paths(settings)
    _check_index(entries, index)
    removed = entries.pop(index)
    _save(settings, entries)
    log.info("Removed custom path %s", removed.path)
    return removed


def toggle_custom_path(settings: Settings, index: int) -> CustomPath:
    """Flip the enabled flag of the entry at *index* and return the new entry.

    Raises:
        CustomPathError: If *index* is out of range.
    """
    entries = custom_paths(settings)
    _check_index(entries, index)
    old = entries[index]
    entries[index] = CustomPath(path=old.path, label=old.label, enabled=not old.enabled)
    _save(settings, entries)
    log.info("%s custom path %s", "Enabled" if entries[index].enabled else "Disabled", old.path)
    return entries[index]


def _check_index(entries: list[CustomPath], index: int) -> None:
    if not 0 <= index < len(entries):
        raise CustomPathError(f"Invalid custom path index: {index}")


def _save(settings: Settings, entries: list[CustomPath]) -> None:
    settings.set(SETTINGS_KEY, [e.to_dict() for e in entries])


def _parse_entry(entry: Any) -> CustomPath | None:
    if isinstance(entry, str):
        return CustomPath(path=Path(entry).expanduser())
    if isinstance(entry, dict) and isinstance(entry.get("path"), str):
        return CustomPath(
            path=Path(entry["path"]).expanduser(),
            label=str(entry.get("label") or ""),
            enabled=bool(entry.get("enabled", True)),
        )
    log.warning("Ignoring invalid custom path entry: %r", entry)
    return None
