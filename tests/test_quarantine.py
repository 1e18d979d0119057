"""Tests for the quarantine store."""

from __future__ import annotations

import errno
import fcntl
import json
import os
import shutil
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import devsweep.storage as storage
from devsweep.core.quarantine import (
    ItemNotFoundError,
    QuarantineBusyError,
    QuarantineStore,
    RecordNotFoundError,
)
from devsweep.models.quarantine import QuarantineStatus
from devsweep.models.scan_result import CleanupItem

pytestmark = pytest.mark.usefixtures("isolate_storage")

GIB = 1024 ** 3


class FakeClock:
    """Deterministic clock advancing one minute per call."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


@pytest.fixture
def store():
    return QuarantineStore(clock=FakeClock())


@pytest.fixture
def make_item(tmp_path):
    workdir = tmp_path / "work"
    workdir.mkdir()

    def _make(name: str, size: int | None = None, category: str = "Go", directory: bool = True) -> CleanupItem:
        path = workdir / name
        if directory:
            path.mkdir()
            (path / "data.bin").write_bytes(b"d" * 64)
        else:
            path.write_bytes(b"f" * 64)
        return CleanupItem(name=name, size_bytes=64 if size is None else size, category=category, path=path)

    return _make


class TestQuarantine:
    def test_round_trip(self, store, make_item):
        item = make_item("go-build")
        record = store.quarantine([item])

        assert record.success_count == 1
        assert record.failed_count == 0
        stored = record.items[0]
        assert stored.status is QuarantineStatus.QUARANTINED
        assert not item.path.exists()
        assert (stored.quarantine_path / "data.bin").read_bytes() == b"d" * 64
        assert stored.quarantine_path.parent == storage.QUARANTINE_DIR / record.id
        assert stored.quarantine_path.name == "0_go-build"

        outcomes = store.restore(record.id)
        assert [o.success for o in outcomes] == [True]
        assert (item.path / "data.bin").read_bytes() == b"d" * 64
        assert store.get_record(record.id).items[0].status is QuarantineStatus.RESTORED
        assert not (storage.QUARANTINE_DIR / record.id).exists()

    def test_files_are_quarantined_too(self, store, make_item):
        item = make_item("cache.db", directory=False)
        record = store.quarantine([item])
        assert record.items[0].quarantine_path.is_file()
        store.restore(record.id)
        assert item.path.read_bytes() == b"f" * 64

    def test_restore_recreates_parent_directories(self, store, make_item):
        item = make_item("pkg")
        record = store.quarantine([item])
        item.path.parent.rmdir()

        outcomes = store.restore(record.id)
        assert outcomes[0].success
        assert item.path.is_dir()

    def test_missing_and_pathless_items_fail(self, store, make_item, tmp_path):
        good = make_item("ok")
        missing = CleanupItem(name="gone", size_bytes=10, category="Go", path=tmp_path / "gone")
        pathless = CleanupItem(name="logical", size_bytes=10, category="Go")

        record = store.quarantine([good, missing, pathless])

        assert record.success_count == 1
        assert record.failed_count == 2
        assert [i.status for i in record.items] == [
            QuarantineStatus.QUARANTINED,
            QuarantineStatus.FAILED,
            QuarantineStatus.FAILED,
        ]
        assert "does not exist" in record.items[1].error
        assert "no path" in record.items[2].error
        assert record.total_bytes == 64

    def test_direct_delete(self, store, make_item):
        item = make_item("target")
        record = store.quarantine([item], use_quarantine=False)

        assert not item.path.exists()
        assert record.items[0].status is QuarantineStatus.PERMANENTLY_DELETED
        assert record.items[0].quarantine_path is None
        assert record.quarantined_bytes == 0

    def test_refuses_quarantine_area(self, store):
        storage.QUARANTINE_DIR.mkdir(parents=True)
        item = CleanupItem(name="q", size_bytes=1, category="Go", path=storage.QUARANTINE_DIR)
        record = store.quarantine([item])
        assert record.items[0].status is QuarantineStatus.FAILED
        assert storage.QUARANTINE_DIR.is_dir()

    def test_records_newest_first(self, store, make_item):
        first = store.quarantine([make_item("a")])
        second = store.quarantine([make_item("b")])
        assert [r.id for r in store.records()] == [second.id, first.id]

    def test_stats(self, store, make_item):
        store.quarantine([make_item("a"), make_item("b")])
        store.quarantine([make_item("c")], use_quarantine=False)
        stats = store.stats()
        assert stats.total_records == 2
        assert stats.restorable_records == 1
        assert stats.total_items == 3
        assert stats.quarantined_bytes == 128


@pytest.fixture
def three_files(tmp_path):
    root = tmp_path / "work" / "build-cache"
    root.mkdir(parents=True)
    for name in ("a.bin", "b.bin", "c.bin"):
        (root / name).write_bytes(name.encode())
    return CleanupItem(name="build-cache", size_bytes=15, category="Go", path=root)


@pytest.fixture
def cross_device(monkeypatch):
    """Make renames of the given source paths fail with EXDEV."""
    real_rename = os.rename
    sources: set[Path] = set()

    def rename(src, dst):
        if Path(src) in sources:
            raise OSError(errno.EXDEV, "Invalid cross-device link")
        return real_rename(src, dst)

    monkeypatch.setattr(os, "rename", rename)
    return sources


class TestMoveIntoQuarantine:
    def test_failed_move_keeps_original(self, store, three_files, monkeypatch):
        def denied(src, dst):
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(os, "rename", denied)
        record = store.quarantine([three_files])

        stored = record.items[0]
        assert stored.status is QuarantineStatus.FAILED
        assert stored.quarantine_path is None
        assert "Failed to move to quarantine" in stored.error
        assert sorted(p.name for p in three_files.path.iterdir()) == ["a.bin", "b.bin", "c.bin"]

    def test_copy_across_filesystems(self, store, three_files, cross_device):
        cross_device.add(three_files.path)
        record = store.quarantine([three_files])

        stored = record.items[0]
        assert stored.status is QuarantineStatus.QUARANTINED
        assert not three_files.path.exists()
        assert (stored.quarantine_path / "b.bin").read_bytes() == b"b.bin"

        assert store.restore(record.id)[0].success
        assert sorted(p.name for p in three_files.path.iterdir()) == ["a.bin", "b.bin", "c.bin"]

    def test_failed_copy_drops_partial_copy(self, store, three_files, cross_device, monkeypatch):
        cross_device.add(three_files.path)

        def broken_copytree(src, dst, symlinks=False):
            Path(dst).mkdir()
            (Path(dst) / "a.bin").write_bytes(b"a.bin")
            raise shutil.Error([(str(src), str(dst), "disk full")])

        monkeypatch.setattr(shutil, "copytree", broken_copytree)
        record = store.quarantine([three_files])

        stored = record.items[0]
        assert stored.status is QuarantineStatus.FAILED
        assert stored.quarantine_path is None
        assert not (storage.QUARANTINE_DIR / record.id).exists()
        assert sorted(p.name for p in three_files.path.iterdir()) == ["a.bin", "b.bin", "c.bin"]

    def test_complete_copy_kept_when_original_removal_fails(self, store, three_files, cross_device, monkeypatch):
        cross_device.add(three_files.path)
        real_rmtree = shutil.rmtree

        def partial_rmtree(path, *args, **kwargs):
            if Path(path) != three_files.path:
                return real_rmtree(path, *args, **kwargs)
            (three_files.path / "a.bin").unlink()
            (three_files.path / "b.bin").unlink()
            raise PermissionError(errno.EACCES, "Permission denied")

        monkeypatch.setattr(shutil, "rmtree", partial_rmtree)
        record = store.quarantine([three_files])

        stored = store.get_record(record.id).items[0]
        assert stored.status is QuarantineStatus.FAILED
        assert stored.quarantine_path is not None
        assert sorted(p.name for p in stored.quarantine_path.iterdir()) == ["a.bin", "b.bin", "c.bin"]
        assert [p.name for p in three_files.path.iterdir()] == ["c.bin"]
        assert str(stored.quarantine_path) in stored.error

        # The kept copy is still reachable for permanent deletion.
        copy = stored.quarantine_path
        assert store.delete_permanent(record.id, 0).success
        assert not copy.exists()

    def test_clear_all_removes_kept_copies(self, store, three_files, cross_device, monkeypatch):
        cross_device.add(three_files.path)

        real_rmtree = shutil.rmtree

        def denied_rmtree(path, *args, **kwargs):
            if Path(path) == three_files.path:
                raise PermissionError(errno.EACCES, "Permission denied")
            return real_rmtree(path, *args, **kwargs)

        monkeypatch.setattr(shutil, "rmtree", denied_rmtree)
        record = store.quarantine([three_files])
        copy = record.items[0].quarantine_path

        store.clear_all()
        assert not copy.exists()
        assert three_files.path.is_dir()


class TestRestore:
    def test_unknown_record(self, store):
        with pytest.raises(RecordNotFoundError):
            store.restore("cleanup_nope")

    def test_record_not_found_is_lookup_error(self, store):
        with pytest.raises(LookupError):
            store.restore("cleanup_nope")

    def test_occupied_original_fails(self, store, make_item):
        item = make_item("occupied")
        record = store.quarantine([item])
        item.path.mkdir()

        outcomes = store.restore(record.id)
        assert not outcomes[0].success
        assert "already exists" in outcomes[0].message
        stored = store.get_record(record.id).items[0]
        assert stored.status is QuarantineStatus.FAILED
        assert stored.quarantine_path.exists()

    def test_partial_restore(self, store, make_item):
        a = make_item("a")
        b = make_item("b")
        record = store.quarantine([a, b])
        b.path.mkdir()

        outcomes = store.restore(record.id)
        assert [o.success for o in outcomes] == [True, False]
        assert a.path.exists()

    def test_restore_after_permanent_delete_changes_nothing(self, store, make_item):
        item = make_item("only")
        record = store.quarantine([item])
        store.delete_permanent(record.id, 0)
        before = storage.HISTORY_FILE.read_text()

        outcomes = store.restore(record.id)

        assert len(outcomes) == 1
        assert not outcomes[0].success
        assert outcomes[0].status is QuarantineStatus.PERMANENTLY_DELETED
        assert not item.path.exists()
        assert storage.HISTORY_FILE.read_text() == before

    def test_restore_twice(self, store, make_item):
        record = store.quarantine([make_item("twice")])
        store.restore(record.id)
        outcomes = store.restore(record.id)
        assert not outcomes[0].success
        assert outcomes[0].status is QuarantineStatus.RESTORED


class TestDeletePermanent:
    def test_deletes_quarantined_item(self, store, make_item):
        record = store.quarantine([make_item("a"), make_item("b")])
        stored = record.items[1].quarantine_path

        outcome = store.delete_permanent(record.id, 1)

        assert outcome.success
        assert not stored.exists()
        items = store.get_record(record.id).items
        assert items[0].status is QuarantineStatus.QUARANTINED
        assert items[1].status is QuarantineStatus.PERMANENTLY_DELETED

    def test_bad_index(self, store, make_item):
        record = store.quarantine([make_item("a")])
        with pytest.raises(ItemNotFoundError):
            store.delete_permanent(record.id, 5)
        with pytest.raises(ItemNotFoundError):
            store.delete_permanent(record.id, -1)

    def test_unknown_record(self, store):
        with pytest.raises(RecordNotFoundError):
            store.delete_permanent("cleanup_nope", 0)

    def test_restored_item_is_untouched(self, store, make_item):
        item = make_item("a")
        record = store.quarantine([item])
        store.restore(record.id)

        outcome = store.delete_permanent(record.id, 0)
        assert not outcome.success
        assert item.path.exists()

    def test_stranded_failed_item_can_be_deleted(self, store, make_item):
        item = make_item("stranded")
        record = store.quarantine([item])
        item.path.mkdir()
        store.restore(record.id)
        stored = store.get_record(record.id).items[0].quarantine_path

        outcome = store.delete_permanent(record.id, 0)
        assert outcome.success
        assert not stored.exists()
        assert item.path.exists()


class TestAutoPrune:
    def test_prune_removes_oldest_until_under_target(self, make_item):
        store = QuarantineStore(capacity_bytes=10 * GIB, clock=FakeClock())
        old = store.quarantine([make_item("old", size=4 * GIB)])
        new = store.quarantine([make_item("new", size=7 * GIB)])

        assert store.get_record(old.id).items[0].status is QuarantineStatus.PERMANENTLY_DELETED
        assert store.get_record(new.id).items[0].status is QuarantineStatus.QUARANTINED
        assert store.quarantined_bytes() <= 8 * GIB
        assert not old.items[0].original_path.exists()

    def test_single_oversized_record_is_pruned_entirely(self, make_item):
        store = QuarantineStore(capacity_bytes=10 * GIB, clock=FakeClock())
        record = store.quarantine([make_item("a", size=6 * GIB), make_item("b", size=5 * GIB)])

        assert store.quarantined_bytes() == 0
        assert all(i.status is QuarantineStatus.PERMANENTLY_DELETED for i in store.get_record(record.id).items)

    def test_under_capacity_prunes_nothing(self, make_item):
        store = QuarantineStore(capacity_bytes=10 * GIB, clock=FakeClock())
        store.quarantine([make_item("a", size=9 * GIB)])
        assert store.auto_prune() == []
        assert store.quarantined_bytes() == 9 * GIB

    def test_skips_records_without_quarantined_items(self, make_item):
        store = QuarantineStore(capacity_bytes=1000, clock=FakeClock())
        empty = store.quarantine([make_item("deleted", size=900)], use_quarantine=False)
        kept_old = store.quarantine([make_item("a", size=600)])
        store.capacity_bytes = 10_000
        newest = store.quarantine([make_item("b", size=500)])

        store.capacity_bytes = 1000
        pruned = store.auto_prune()

        assert pruned == [kept_old.id]
        assert empty.id not in pruned
        assert store.get_record(newest.id).has_quarantined


class TestHistory:
    def test_persists_across_instances(self, store, make_item):
        record = store.quarantine([make_item("a")])
        reloaded = QuarantineStore()
        assert [r.id for r in reloaded.records()] == [record.id]
        assert reloaded.get_record(record.id).items[0].status is QuarantineStatus.QUARANTINED

    def test_history_file_format(self, store, make_item):
        record = store.quarantine([make_item("a")])
        data = json.loads(storage.HISTORY_FILE.read_text())
        assert data["version"] == 1
        assert data["records"][0]["id"] == record.id
        assert data["records"][0]["items"][0]["status"] == "quarantined"

    def test_corrupt_history_is_empty(self):
        storage.HISTORY_FILE.write_text("[[[")
        assert QuarantineStore().records() == []

    def test_malformed_record_is_dropped(self, store, make_item):
        record = store.quarantine([make_item("a")])
        data = json.loads(storage.HISTORY_FILE.read_text())
        data["records"].append({"id": "broken"})
        storage.HISTORY_FILE.write_text(json.dumps(data))
        assert [r.id for r in QuarantineStore().records()] == [record.id]

    def test_trimmed_to_max_records(self, make_item):
        store = QuarantineStore(max_records=2, clock=FakeClock())
        first = store.quarantine([make_item("a")])
        oldest_file = first.items[0].quarantine_path
        store.quarantine([make_item("b")])
        store.quarantine([make_item("c")])

        assert len(store.records()) == 2
        assert store.get_record(first.id) is None
        assert not oldest_file.exists()

    def test_sees_records_written_by_another_instance(self, make_item):
        ours = QuarantineStore(clock=FakeClock())
        theirs = QuarantineStore(clock=FakeClock())
        their_record = theirs.quarantine([make_item("theirs")])
        our_record = ours.quarantine([make_item("ours")])

        assert {r.id for r in ours.records()} == {their_record.id, our_record.id}

    def test_clear_all(self, store, make_item):
        record = store.quarantine([make_item("a"), make_item("b")])
        stored = [i.quarantine_path for i in record.items]

        assert store.clear_all() == 1
        assert store.records() == []
        assert not any(p.exists() for p in stored)
        assert QuarantineStore().records() == []


class TestLocking:
    def test_busy_when_another_process_holds_lock(self, make_item):
        store = QuarantineStore(lock_timeout=0.2)
        lock_path = storage.HISTORY_FILE.with_name(storage.HISTORY_FILE.name + ".lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        item = make_item("a")

        with open(lock_path, "a") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            with pytest.raises(QuarantineBusyError) as exc_info:
                store.quarantine([item])
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)

        assert exc_info.value.retryable
        assert item.path.exists()
        assert store.records() == []

    def test_busy_when_another_thread_holds_lock(self, make_item):
        store = QuarantineStore(lock_timeout=0.1)
        store._lock.acquire()
        try:
            with pytest.raises(QuarantineBusyError):
                store.auto_prune()
        finally:
            store._lock.release()

    def test_lock_released_after_operation(self, store, make_item):
        store.quarantine([make_item("a")])
        store.quarantine([make_item("b")])
        assert len(store.records()) == 2
