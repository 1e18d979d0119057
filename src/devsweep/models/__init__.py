"""devsweep data models."""

from devsweep.models.checker import CacheDir, Checker, DirectoryChecker, SubdirectoryChecker
from devsweep.models.quarantine import CleanupRecord, ItemOutcome, QuarantineItem, QuarantineStatus
from devsweep.models.scan_result import CategoryData, CleanupItem

__all__ = [
    "CacheDir",
    "CategoryData",
    "Checker",
    "CleanupItem",
    "CleanupRecord",
    "DirectoryChecker",
    "ItemOutcome",
    "QuarantineItem",
    "QuarantineStatus",
    "SubdirectoryChecker",
]
