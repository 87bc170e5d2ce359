"""
Tests for storage backends and compare-and-swap semantics
"""

import pytest
import tempfile
import threading
from pathlib import Path

from approval_quorum.errors import DuplicateIdError, NotFoundError, VersionConflictError
from approval_quorum.storage import (
    InMemoryStorage, SQLiteStorage, StorageInterface, create_storage
)


@pytest.fixture(params=["memory", "sqlite"])
def storage(request):
    """Run every test against both backends"""
    if request.param == "memory":
        backend = InMemoryStorage()
        yield backend
        backend.close()
    else:
        with tempfile.TemporaryDirectory() as temp_dir:
            backend = SQLiteStorage(Path(temp_dir) / "test.db")
            yield backend
            backend.close()


class TestBasicOperations:
    """CRUD operations shared by all backends"""

    def test_save_and_load(self, storage):
        storage.save("records", "r1", {"id": "r1", "amount": "100.50"})
        assert storage.load("records", "r1") == {"id": "r1", "amount": "100.50"}
        assert storage.exists("records", "r1")
        assert not storage.exists("records", "missing")
        assert storage.load("records", "missing") is None

    def test_find_and_count(self, storage):
        storage.save("records", "r1", {"id": "r1", "status": "pending"})
        storage.save("records", "r2", {"id": "r2", "status": "approved"})
        storage.save("records", "r3", {"id": "r3", "status": "pending"})

        pending = storage.find("records", {"status": "pending"})
        assert sorted(r["id"] for r in pending) == ["r1", "r3"]
        assert len(storage.find("records", {})) == 3
        assert storage.count("records") == 3

        storage.clear_table("records")
        assert storage.count("records") == 0

    def test_loaded_records_are_copies(self, storage):
        storage.save("records", "r1", {"id": "r1", "votes": []})
        loaded = storage.load("records", "r1")
        loaded["votes"].append("tampered")
        assert storage.load("records", "r1")["votes"] == []


class TestInsert:
    """Create-if-absent semantics"""

    def test_insert_starts_at_version_zero(self, storage):
        storage.insert("entries", "tx1", {"id": "tx1"})
        assert storage.get_version("entries", "tx1") == 0
        assert storage.load("entries", "tx1") == {"id": "tx1"}

    def test_insert_duplicate_raises(self, storage):
        storage.insert("entries", "tx1", {"id": "tx1", "n": 1})
        with pytest.raises(DuplicateIdError) as exc_info:
            storage.insert("entries", "tx1", {"id": "tx1", "n": 2})
        assert exc_info.value.code == "duplicate_id"
        # Original record untouched
        assert storage.load("entries", "tx1")["n"] == 1

    def test_get_version_of_missing_record(self, storage):
        assert storage.get_version("entries", "nope") is None


class TestCompareAndSwap:
    """Optimistic-concurrency update primitive"""

    def test_swap_with_matching_version(self, storage):
        storage.insert("entries", "tx1", {"id": "tx1", "n": 0})
        new_version = storage.compare_and_swap("entries", "tx1", 0, {"id": "tx1", "n": 1})

        assert new_version == 1
        assert storage.get_version("entries", "tx1") == 1
        assert storage.load("entries", "tx1")["n"] == 1

    def test_swap_with_stale_version_conflicts(self, storage):
        storage.insert("entries", "tx1", {"id": "tx1", "n": 0})
        storage.compare_and_swap("entries", "tx1", 0, {"id": "tx1", "n": 1})

        with pytest.raises(VersionConflictError) as exc_info:
            storage.compare_and_swap("entries", "tx1", 0, {"id": "tx1", "n": 99})

        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1
        assert storage.load("entries", "tx1")["n"] == 1
        assert storage.get_version("entries", "tx1") == 1

    def test_swap_missing_record(self, storage):
        with pytest.raises(NotFoundError):
            storage.compare_and_swap("entries", "ghost", 0, {"id": "ghost"})

    def test_save_does_not_change_version(self, storage):
        storage.insert("entries", "tx1", {"id": "tx1"})
        storage.compare_and_swap("entries", "tx1", 0, {"id": "tx1", "n": 1})
        storage.save("entries", "tx1", {"id": "tx1", "n": 2})
        assert storage.get_version("entries", "tx1") == 1

    def test_concurrent_swaps_have_single_winner(self, storage):
        """Only one of many racing writers at the same version succeeds"""
        storage.insert("entries", "tx1", {"id": "tx1", "writer": None})
        winners = []
        conflicts = []
        barrier = threading.Barrier(8)

        def write(writer_id):
            barrier.wait()
            try:
                storage.compare_and_swap("entries", "tx1", 0, {"id": "tx1", "writer": writer_id})
                winners.append(writer_id)
            except VersionConflictError:
                conflicts.append(writer_id)

        threads = [threading.Thread(target=write, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(winners) == 1
        assert len(conflicts) == 7
        assert storage.load("entries", "tx1")["writer"] == winners[0]
        assert storage.get_version("entries", "tx1") == 1


class TestSQLitePersistence:
    """Data survives reopening the database file"""

    def test_versions_persist_across_connections(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "persist.db"
            first = SQLiteStorage(db_path)
            first.insert("entries", "tx1", {"id": "tx1"})
            first.compare_and_swap("entries", "tx1", 0, {"id": "tx1", "n": 1})
            first.close()

            second = SQLiteStorage(db_path)
            assert second.get_version("entries", "tx1") == 1
            assert second.load("entries", "tx1") == {"id": "tx1", "n": 1}
            second.close()


class TestCreateStorage:
    """Storage factory from database URLs"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            backend = create_storage(f"sqlite:///{temp_dir}/quorum.db")
            assert isinstance(backend, SQLiteStorage)
            assert backend.db_path == f"{temp_dir}/quorum.db"
            backend.close()

    def test_sqlite_in_memory_url(self):
        backend = create_storage("sqlite://")
        assert isinstance(backend, StorageInterface)
        assert backend.db_path == ":memory:"
        backend.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/db")
