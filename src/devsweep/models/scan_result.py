"""Scan result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class CleanupItem:
    """Single file or directory a checker reports as reclaimable.

    ``path`` is None for logical items that are not backed by one
    filesystem location; such items cannot be quarantined.
    """

    name: str
    size_bytes: int
    category: str
    path: Path | None = None
    safe_to_delete: bool = False
    warning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "size_bytes": self.size_bytes,
            "category": self.category,
            "path": str(self.path) if self.path is not None else None,
            "safe_to_delete": self.safe_to_delete,
            "warning": self.warning,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CleanupItem:
        raw_path = data.get("path")
        return cls(
            name=data["name"],
            size_bytes=int(data["size_bytes"]),
            category=data["category"],
            path=Path(raw_path) if raw_path else None,
            safe_to_delete=bool(data.get("safe_to_delete", False)),
            warning=data.get("warning", ""),
        )


@dataclass(slots=True)
class CategoryData:
    """One checker's output: the items found for a single category.

    ``total_bytes`` is always recomputed from ``items``. ``error`` is set
    when the checker failed; the category is then reported empty.
    """

    name: str
    items: list[CleanupItem] = field(default_factory=list)
    total_bytes: int = 0
    error: str = ""

    def __post_init__(self) -> None:
        for item in self.items:
            if item.category != self.name:
                raise ValueError(
                    f"Item '{item.name}' belongs to category '{item.category}', not '{self.name}'"
                )
        self.total_bytes = sum(item.size_bytes for item in self.items)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "items": [item.to_dict() for item in self.items],
            "total_bytes": self.total_bytes,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CategoryData:
        return cls(
            name=data["name"],
            items=[CleanupItem.from_dict(item) for item in data.get("items", [])],
            error=data.get("error", ""),
        )
