"""Reversible deletion: quarantine, restore, permanent delete and pruning.

Cleaned items are moved into a quarantine directory instead of being
deleted, and every cleanup is logged as a :class:`CleanupRecord` in a JSON
history file. Records can later be restored or their items deleted for
good. When the quarantined bytes exceed the capacity, the oldest records
are pruned until usage drops to 80% of the capacity.
"""

from __future__ import annotations

import errno
import fcntl
import logging
import os
import shutil
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator

from devsweep import storage
from devsweep.models.quarantine import CleanupRecord, ItemOutcome, QuarantineItem, QuarantineStatus
from devsweep.models.scan_result import CleanupItem
from devsweep.utils import path_exists, remove_path

log = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10 * 1024 ** 3
DEFAULT_MAX_RECORDS = 50
DEFAULT_LOCK_TIMEOUT = 10.0

# After pruning, usage must be at or below this fraction of the capacity.
PRUNE_TARGET_RATIO = 0.8

_FORMAT_VERSION = 1
_LOCK_POLL_INTERVAL = 0.05


class QuarantineError(Exception):
    """Base class for quarantine store errors."""


class RecordNotFoundError(QuarantineError, LookupError):
    """No cleanup record has the requested id."""


class ItemNotFoundError(QuarantineError, LookupError):
    """The item index is out of range for the record."""


class QuarantineBusyError(QuarantineError):
    """Another cleanup, restore or delete holds the history lock.

    The operation did not run and can be retried.
    """

    retryable = True


@dataclass(frozen=True)
class HistoryStats:
    """Summary of the cleanup history."""

    total_records: int
    restorable_records: int
    total_items: int
    quarantined_bytes: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _file_lock(lock_path: Path, timeout: float) -> Iterator[None]:
    """Hold an exclusive advisory lock on *lock_path*, waiting at most *timeout*."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with open(lock_path, "a") as f:
        while True:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    raise QuarantineBusyError(f"History is locked by another process: {lock_path}")
                time.sleep(_LOCK_POLL_INTERVAL)
        try:
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class QuarantineStore:
    """Owns the quarantine directory and the cleanup history file.

    Mutating operations (:meth:`quarantine`, :meth:`restore`,
    :meth:`delete_permanent`, :meth:`auto_prune`, :meth:`clear_all`) are
    serialized by a thread lock plus an advisory file lock. If either
    cannot be taken within ``lock_timeout`` seconds,
    :class:`QuarantineBusyError` is raised. Reads take no lock.
    """

    def __init__(
        self,
        history_path: Path | None = None,
        quarantine_dir: Path | None = None,
        capacity_bytes: int = DEFAULT_CAPACITY,
        max_records: int = DEFAULT_MAX_RECORDS,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.history_path = history_path or storage.HISTORY_FILE
        self.quarantine_dir = quarantine_dir or storage.QUARANTINE_DIR
        self.capacity_bytes = capacity_bytes
        self.max_records = max_records
        self.lock_timeout = lock_timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._lock_path = self.history_path.with_name(self.history_path.name + ".lock")
        self._records: list[CleanupRecord] = []
        self._loaded_mtime_ns: int | None = None
        self._load()

    # ── reads ────────────────────────────────────────────────────────────

    def records(self) -> list[CleanupRecord]:
        """All records, newest first."""
        return sorted(self._records, key=lambda r: r.timestamp, reverse=True)

    def get_record(self, record_id: str) -> CleanupRecord | None:
        return next((r for r in self._records if r.id == record_id), None)

    def quarantined_bytes(self) -> int:
        """Total size of all items currently held in quarantine."""
        return sum(r.quarantined_bytes for r in self._records)

    def stats(self) -> HistoryStats:
        return HistoryStats(
            total_records=len(self._records),
            restorable_records=sum(1 for r in self._records if r.has_quarantined),
            total_items=sum(len(r.items) for r in self._records),
            quarantined_bytes=self.quarantined_bytes(),
        )

    # ── mutations ────────────────────────────────────────────────────────

    def quarantine(self, items: list[CleanupItem], use_quarantine: bool = True) -> CleanupRecord:
        """Clean *items* as one record, then prune if over capacity.

        With ``use_quarantine`` each item is moved into the quarantine
        directory and can be restored later; without it, items are deleted
        immediately. Items that have no path or no longer exist are
        recorded as failed.
        """
        with self._mutating():
            record = CleanupRecord(id=self._new_record_id(), timestamp=self._clock())
            record_dir = self.quarantine_dir / record.id
            self._records.append(record)

            for index, item in enumerate(items):
                if use_quarantine:
                    entry = self._quarantine_one(item, index, record_dir)
                else:
                    entry = self._delete_one(item)
                record.add_item(entry)
                # The move already happened: persist it before touching the next item.
                self._save_locked()

            log.info(
                "Cleanup %s: %d succeeded, %d failed",
                record.id,
                record.success_count,
                record.failed_count,
            )

            self._auto_prune_locked()
            self._trim_history_locked()
            self._save_locked()
            _remove_if_empty(record_dir)
            return record

    def restore(self, record_id: str) -> list[ItemOutcome]:
        """Move every quarantined item of a record back to where it came from.

        Each item succeeds or fails on its own. Items that are not in
        quarantine produce a failed outcome and are left untouched.

        Raises:
            RecordNotFoundError: If no record has *record_id*.
        """
        with self._mutating():
            record = self._require_record(record_id)
            outcomes: list[ItemOutcome] = []
            changed = False

            for index, item in enumerate(record.items):
                if item.status is not QuarantineStatus.QUARANTINED:
                    outcomes.append(_not_in_quarantine(index, item))
                    continue
                outcomes.append(self._restore_one(index, item))
                changed = True

            if changed:
                self._save_locked()
                _remove_if_empty(self.quarantine_dir / record.id)

            restored = sum(1 for o in outcomes if o.success)
            log.info("Restore %s: %d of %d items restored", record_id, restored, len(outcomes))
            return outcomes

    def delete_permanent(self, record_id: str, item_index: int) -> ItemOutcome:
        """Irreversibly delete one quarantined item.

        Items whose restore failed but whose file is still in quarantine
        can be deleted too. Anything else yields a failed outcome without
        side effects.

        Raises:
            RecordNotFoundError: If no record has *record_id*.
            ItemNotFoundError: If *item_index* is out of range.
        """
        with self._mutating():
            record = self._require_record(record_id)
            if not 0 <= item_index < len(record.items):
                raise ItemNotFoundError(f"Record {record_id} has no item {item_index}")

            item = record.items[item_index]
            stranded = (
                item.status is QuarantineStatus.FAILED
                and item.quarantine_path is not None
                and path_exists(item.quarantine_path)
            )
            if item.status is not QuarantineStatus.QUARANTINED and not stranded:
                return _not_in_quarantine(item_index, item)

            stored = item.quarantine_path
            message = f"Deleted: {item.name}"
            if stored is not None and path_exists(stored):
                try:
                    remove_path(stored)
                except OSError as e:
                    log.warning("Could not delete quarantined %s: %s", stored, e)
                    return ItemOutcome(
                        index=item_index,
                        name=item.name,
                        success=False,
                        status=item.status,
                        message=f"Failed to delete quarantined item: {e}",
                    )
            else:
                message = f"Quarantined copy of {item.name} was already gone"

            item.status = QuarantineStatus.PERMANENTLY_DELETED
            item.quarantine_path = None
            item.error = ""
            self._save_locked()
            if stored is not None:
                _remove_if_empty(stored.parent)
            return ItemOutcome(
                index=item_index,
                name=item.name,
                success=True,
                status=item.status,
                message=message,
            )

    def auto_prune(self) -> list[str]:
        """Prune oldest records while quarantined bytes exceed the capacity.

        Returns:
            Ids of the records whose quarantined items were deleted.
        """
        with self._mutating():
            pruned = self._auto_prune_locked()
            if pruned:
                self._save_locked()
            return pruned

    def clear_all(self) -> int:
        """Permanently delete everything in quarantine and forget all records.

        Returns:
            Number of records removed.
        """
        with self._mutating():
            count = len(self._records)
            for record in self._records:
                self._discard_record(record, stranded=True)
            self._records = []
            self._save_locked()
            log.info("Cleared %d cleanup records", count)
            return count

    # ── internals ────────────────────────────────────────────────────────

    @contextmanager
    def _mutating(self) -> Iterator[None]:
        """Serialize a mutation against threads and other processes."""
        started = time.monotonic()
        if not self._lock.acquire(timeout=self.lock_timeout):
            raise QuarantineBusyError("Another cleanup operation is in progress")
        try:
            remaining = max(0.0, self.lock_timeout - (time.monotonic() - started))
            with _file_lock(self._lock_path, remaining):
                self._refresh()
                yield
        finally:
            self._lock.release()

    def _new_record_id(self) -> str:
        return f"cleanup_{self._clock():%Y%m%d%H%M%S}_{uuid.uuid4().hex[:8]}"

    def _require_record(self, record_id: str) -> CleanupRecord:
        record = self.get_record(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found: {record_id}")
        return record

    def _quarantine_one(self, item: CleanupItem, index: int, record_dir: Path) -> QuarantineItem:
        path = item.path
        if path is None:
            return _failed(item, "Item has no path (already removed or not a filesystem item)")
        if not path_exists(path):
            return _failed(item, f"Path does not exist: {path}")
        if _is_within(path, self.quarantine_dir) or _is_within(self.quarantine_dir, path):
            return _failed(item, f"Refusing to quarantine a path overlapping the quarantine area: {path}")

        dest = record_dir / f"{index}_{path.name}"
        try:
            record_dir.mkdir(parents=True, exist_ok=True)
            os.rename(path, dest)
        except OSError as e:
            if e.errno == errno.EXDEV:
                return self._quarantine_across_devices(item, path, dest)
            log.warning("Failed to quarantine %s: %s", path, e)
            return _failed(item, f"Failed to move to quarantine: {e}")

        log.debug("Quarantined %s -> %s", path, dest)
        return _quarantined(item, path, dest)

    def _quarantine_across_devices(self, item: CleanupItem, path: Path, dest: Path) -> QuarantineItem:
        """Copy *path* into quarantine, then remove the original.

        A failed copy leaves the original whole, so the partial copy is
        dropped. Once the copy is complete it is never dropped: if removing
        the original fails, the item is recorded as failed but keeps its
        quarantine path, and :meth:`delete_permanent` can still remove it.
        """
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.copytree(path, dest, symlinks=True)
            else:
                shutil.copy2(path, dest, follow_symlinks=False)
        except (OSError, shutil.Error) as e:
            log.warning("Failed to copy %s into quarantine: %s", path, e)
            if path_exists(dest):
                try:
                    remove_path(dest)
                except OSError:
                    log.exception("Could not remove partial quarantine copy %s", dest)
            return _failed(item, f"Failed to copy to quarantine: {e}")

        try:
            remove_path(path)
        except OSError as e:
            log.error("Copied %s into quarantine but could not remove it: %s", path, e)
            return QuarantineItem(
                name=item.name,
                original_path=path,
                quarantine_path=dest,
                size_bytes=item.size_bytes,
                status=QuarantineStatus.FAILED,
                error=f"Could not remove original after copying it to quarantine ({e}); full copy kept at {dest}",
            )

        log.debug("Quarantined %s -> %s (copied across filesystems)", path, dest)
        return _quarantined(item, path, dest)

    def _delete_one(self, item: CleanupItem) -> QuarantineItem:
        path = item.path
        if path is None:
            return _failed(item, "Item has no path (already removed or not a filesystem item)")
        if not path_exists(path):
            return _failed(item, f"Path does not exist: {path}")
        try:
            remove_path(path)
        except OSError as e:
            log.warning("Failed to delete %s: %s", path, e)
            return _failed(item, f"Failed to delete: {e}")

        log.debug("Deleted %s", path)
        return QuarantineItem(
            name=item.name,
            original_path=path,
            quarantine_path=None,
            size_bytes=item.size_bytes,
            status=QuarantineStatus.PERMANENTLY_DELETED,
        )

    def _restore_one(self, index: int, item: QuarantineItem) -> ItemOutcome:
        stored = item.quarantine_path
        original = item.original_path
        error = ""

        if stored is None or original is None or not path_exists(stored):
            error = "Quarantined file no longer exists"
        elif path_exists(original):
            error = f"Original location already exists: {original}"
        else:
            try:
                original.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(stored), str(original))
            except (OSError, shutil.Error) as e:
                error = f"Failed to restore from quarantine: {e}"

        if error:
            log.warning("Could not restore %s: %s", item.name, error)
            item.status = QuarantineStatus.FAILED
            item.error = error
            return ItemOutcome(index=index, name=item.name, success=False, status=item.status, message=error)

        log.debug("Restored %s -> %s", stored, original)
        item.status = QuarantineStatus.RESTORED
        item.error = ""
        return ItemOutcome(
            index=index,
            name=item.name,
            success=True,
            status=item.status,
            message=f"Restored: {original}",
        )

    def _discard_item(self, item: QuarantineItem) -> None:
        """Permanently delete a quarantined item's file, marking the outcome."""
        stored = item.quarantine_path
        try:
            if stored is not None and path_exists(stored):
                remove_path(stored)
        except OSError as e:
            log.warning("Could not delete quarantined %s: %s", stored, e)
            item.status = QuarantineStatus.FAILED
            item.error = f"Failed to delete quarantined item: {e}"
            return
        item.status = QuarantineStatus.PERMANENTLY_DELETED
        item.quarantine_path = None
        if stored is not None:
            _remove_if_empty(stored.parent)

    def _discard_record(self, record: CleanupRecord, stranded: bool = False) -> None:
        for item in record.items:
            if item.status is QuarantineStatus.QUARANTINED:
                self._discard_item(item)
            elif stranded and item.status is QuarantineStatus.FAILED and item.quarantine_path is not None:
                self._discard_item(item)
        _remove_if_empty(self.quarantine_dir / record.id)

    def _auto_prune_locked(self) -> list[str]:
        total = self.quarantined_bytes()
        if total <= self.capacity_bytes:
            return []

        target = int(self.capacity_bytes * PRUNE_TARGET_RATIO)
        pruned: list[str] = []
        # sorted() is stable: records with equal timestamps keep insertion order.
        for record in sorted(self._records, key=lambda r: r.timestamp):
            if total <= target:
                break
            if not record.has_quarantined:
                continue
            total -= record.quarantined_bytes
            self._discard_record(record)
            pruned.append(record.id)

        log.info(
            "Quarantine over capacity: pruned %d record(s), %d bytes remain",
            len(pruned),
            self.quarantined_bytes(),
        )
        return pruned

    def _trim_history_locked(self) -> None:
        if len(self._records) <= self.max_records:
            return
        by_age = sorted(self._records, key=lambda r: r.timestamp)
        dropped = by_age[: len(self._records) - self.max_records]
        for record in dropped:
            self._discard_record(record)
        dropped_ids = {r.id for r in dropped}
        self._records = [r for r in self._records if r.id not in dropped_ids]
        log.info("Dropped %d old cleanup record(s) from history", len(dropped))

    def _save_locked(self) -> None:
        payload = {
            "version": _FORMAT_VERSION,
            "records": [r.to_dict() for r in self._records],
        }
        try:
            storage.save_json(self.history_path, payload)
        except OSError:
            log.exception("Failed to save cleanup history: %s", self.history_path)
            return
        self._loaded_mtime_ns = _mtime_ns(self.history_path)

    def _refresh(self) -> None:
        """Reload the history if another process replaced it since our last read."""
        current = _mtime_ns(self.history_path)
        if current is not None and current != self._loaded_mtime_ns:
            log.debug("History file changed on disk, reloading")
            self._load()

    def _load(self) -> None:
        """Load the history; a malformed file counts as empty history."""
        self._loaded_mtime_ns = _mtime_ns(self.history_path)
        data = storage.load_json(self.history_path, None)
        if data is None:
            return
        raw_records = data.get("records") if isinstance(data, dict) else None
        if not isinstance(raw_records, list):
            log.warning("Ignoring malformed cleanup history file: %s", self.history_path)
            return

        records: list[CleanupRecord] = []
        for raw in raw_records:
            try:
                records.append(CleanupRecord.from_dict(raw))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                log.warning("Dropping malformed cleanup record: %s", e)
        self._records = records
        log.debug("Loaded %d cleanup records from %s", len(records), self.history_path)


def _failed(item: CleanupItem, error: str) -> QuarantineItem:
    log.warning("Cannot clean '%s': %s", item.name, error)
    return QuarantineItem(
        name=item.name,
        original_path=item.path,
        quarantine_path=None,
        size_bytes=item.size_bytes,
        status=QuarantineStatus.FAILED,
        error=error,
    )


def _quarantined(item: CleanupItem, path: Path, dest: Path) -> QuarantineItem:
    return QuarantineItem(
        name=item.name,
        original_path=path,
        quarantine_path=dest,
        size_bytes=item.size_bytes,
        status=QuarantineStatus.QUARANTINED,
    )


def _not_in_quarantine(index: int, item: QuarantineItem) -> ItemOutcome:
    return ItemOutcome(
        index=index,
        name=item.name,
        success=False,
        status=item.status,
        message=f"Item is not in quarantine (status: {item.status.value})",
    )


def _is_within(path: Path, parent: Path) -> bool:
    try:
        path.resolve().relative_to(parent.resolve())
    except (ValueError, OSError):
        return False
    return True


def _remove_if_empty(directory: Path) -> None:
    try:
        directory.rmdir()
    except OSError:
        pass


def _mtime_ns(path: Path) -> int | None:
    try:
        return path.stat().st_mtime_ns
    except OSError:
        return None
