"""Cleanup record dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


class QuarantineStatus(str, Enum):
    """Lifecycle of a cleaned item.

    ``QUARANTINED`` items can be restored, deleted or fail. A ``FAILED``
    item whose file is still in quarantine can only be deleted.
    ``RESTORED`` and ``PERMANENTLY_DELETED`` are terminal.
    """

    QUARANTINED = "quarantined"
    RESTORED = "restored"
    PERMANENTLY_DELETED = "permanently_deleted"
    FAILED = "failed"


@dataclass(slots=True)
class QuarantineItem:
    """One item of a cleanup, and where it went."""

    name: str
    original_path: Path | None
    quarantine_path: Path | None
    size_bytes: int
    status: QuarantineStatus
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "original_path": str(self.original_path) if self.original_path else None,
            "quarantine_path": str(self.quarantine_path) if self.quarantine_path else None,
            "size_bytes": self.size_bytes,
            "status": self.status.value,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuarantineItem:
        original = data.get("original_path")
        stored = data.get("quarantine_path")
        return cls(
            name=data["name"],
            original_path=Path(original) if original else None,
            quarantine_path=Path(stored) if stored else None,
            size_bytes=int(data.get("size_bytes", 0)),
            status=QuarantineStatus(data["status"]),
            error=data.get("error", ""),
        )


@dataclass(slots=True)
class CleanupRecord:
    """Durable log entry for one cleanup invocation.

    ``success_count`` and ``failed_count`` describe the cleanup itself and
    do not change when items are later restored or deleted.
    """

    id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    items: list[QuarantineItem] = field(default_factory=list)
    success_count: int = 0
    failed_count: int = 0

    def add_item(self, item: QuarantineItem) -> None:
        if item.status is QuarantineStatus.FAILED:
            self.failed_count += 1
        else:
            self.success_count += 1
        self.items.append(item)

    @property
    def total_bytes(self) -> int:
        return sum(i.size_bytes for i in self.items if i.status is not QuarantineStatus.FAILED)

    @property
    def quarantined_bytes(self) -> int:
        return sum(i.size_bytes for i in self.items if i.status is QuarantineStatus.QUARANTINED)

    @property
    def has_quarantined(self) -> bool:
        return any(i.status is QuarantineStatus.QUARANTINED for i in self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "items": [i.to_dict() for i in self.items],
            "success_count": self.success_count,
            "failed_count": self.failed_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CleanupRecord:
        return cls(
            id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            items=[QuarantineItem.from_dict(i) for i in data.get("items", [])],
            success_count=int(data.get("success_count", 0)),
            failed_count=int(data.get("failed_count", 0)),
        )


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    """Per-item result of a restore or permanent delete."""

    index: int
    name: str
    success: bool
    status: QuarantineStatus
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
        }
