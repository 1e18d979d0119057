"""Cheap change detection for tracked paths.

A fingerprint is the size, modification time and (for directories) the
number of direct entries of a path. It costs one ``stat`` for a file and
one shallow directory listing for a directory; contents are never read.
"""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Fingerprint:
    """Size, mtime and entry count of one path at one point in time."""

    path: Path
    size_bytes: int
    mtime_ns: int
    entry_count: int | None = None

    def same_as(self, other: Fingerprint | None) -> bool:
        """Compare the signatures, ignoring which path they were taken from."""
        if other is None:
            return False
        return (
            self.size_bytes == other.size_bytes
            and self.mtime_ns == other.mtime_ns
            and self.entry_count == other.entry_count
        )

    def matches_filesystem(self) -> bool:
        """Whether the path still looks the way it did when fingerprinted."""
        return self.same_as(fingerprint(self.path))

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "size_bytes": self.size_bytes,
            "mtime_ns": self.mtime_ns,
            "entry_count": self.entry_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Fingerprint:
        count = data.get("entry_count")
        return cls(
            path=Path(data["path"]),
            size_bytes=int(data["size_bytes"]),
            mtime_ns=int(data["mtime_ns"]),
            entry_count=int(count) if count is not None else None,
        )


def fingerprint(path: Path) -> Fingerprint | None:
    """Fingerprint *path*, or return None if it cannot be stat'd."""
    try:
        st = path.stat()
    except OSError:
        log.debug("Cannot stat tracked path: %s", path)
        return None

    entry_count: int | None = None
    if stat.S_ISDIR(st.st_mode):
        try:
            with os.scandir(path) as it:
                entry_count = sum(1 for _ in it)
        except OSError:
            log.debug("Cannot list tracked directory: %s", path)
            return None

    return Fingerprint(
        path=path,
        size_bytes=st.st_size,
        mtime_ns=st.st_mtime_ns,
        entry_count=entry_count,
    )


def track_paths(paths: Iterable[Path]) -> list[Fingerprint]:
    """Fingerprint every path that exists, once each, in input order."""
    fingerprints: list[Fingerprint] = []
    seen: set[Path] = set()
    for path in paths:
        if path in seen:
            continue
        seen.add(path)
        fp = fingerprint(path)
        if fp is not None:
            fingerprints.append(fp)
    return fingerprints
