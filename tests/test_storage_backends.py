"""Contract tests run against every local storage backend."""

import sqlite3

import pytest

from status_tracker.exceptions import (
    DuplicateKeyError,
    StatusNotFoundError,
    StorageUnavailableError,
    VersionConflictError,
)
from status_tracker.repositories.interfaces import SOURCE_ID_INDEX, TRACKING_ID_INDEX
from status_tracker.repositories.sqlite import SQLiteDatabase, SQLiteStatusStorage


def _doc(key: str, version: int, **extra) -> dict:
    return {"status_id": key, "version": version, **extra}


class TestRecords:
    def test_put_and_get(self, storage):
        storage.put_record("s1", _doc("s1", 1, tags={"a": "b"}), partition_key="c1", expected_version=0)

        assert storage.get_record("s1") == _doc("s1", 1, tags={"a": "b"})

    def test_get_missing_record(self, storage):
        with pytest.raises(StatusNotFoundError):
            storage.get_record("missing")

    def test_insert_requires_absent_record(self, storage):
        storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)

        with pytest.raises(VersionConflictError) as exc_info:
            storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)

        assert exc_info.value.actual_version == 1

    def test_compare_and_swap(self, storage):
        storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)
        storage.put_record("s1", _doc("s1", 2), partition_key="c1", expected_version=1)

        with pytest.raises(VersionConflictError):
            storage.put_record("s1", _doc("s1", 2, stale=True), partition_key="c1", expected_version=1)

        assert storage.get_record("s1") == _doc("s1", 2)

    def test_update_of_missing_record_conflicts(self, storage):
        with pytest.raises(VersionConflictError) as exc_info:
            storage.put_record("s1", _doc("s1", 2), partition_key="c1", expected_version=1)

        assert exc_info.value.actual_version is None

    def test_returned_documents_are_independent(self, storage):
        storage.put_record("s1", _doc("s1", 1, tags={"a": "b"}), partition_key="c1", expected_version=0)

        document = storage.get_record("s1")
        document["tags"]["a"] = "changed"

        assert storage.get_record("s1")["tags"] == {"a": "b"}


class TestPartitions:
    def test_scan_by_partition(self, storage):
        storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)
        storage.put_record("s2", _doc("s2", 1), partition_key="c2", expected_version=0)

        assert [d["status_id"] for d in storage.scan_by_partition("c1")] == ["s1"]
        assert storage.scan_by_partition("nobody") == []

    def test_partition_moves_with_record(self, storage):
        storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)
        storage.put_record("s1", _doc("s1", 2), partition_key="c2", expected_version=1)

        assert storage.scan_by_partition("c1") == []
        assert [d["status_id"] for d in storage.scan_by_partition("c2")] == ["s1"]

    def test_scan_all(self, storage):
        for key in ("s1", "s2", "s3"):
            storage.put_record(key, _doc(key, 1), partition_key="c1", expected_version=0)

        assert sorted(d["status_id"] for d in storage.scan_all()) == ["s1", "s2", "s3"]


class TestIndexes:
    def test_put_and_get(self, storage):
        storage.put_index_entry(TRACKING_ID_INDEX, "ST-A7B3C-230615", "s1")

        assert storage.get_index_entry(TRACKING_ID_INDEX, "ST-A7B3C-230615") == "s1"

    def test_indexes_are_separate(self, storage):
        storage.put_index_entry(TRACKING_ID_INDEX, "k", "s1")
        storage.put_index_entry(SOURCE_ID_INDEX, "k", "s2")

        assert storage.get_index_entry(SOURCE_ID_INDEX, "k") == "s2"

    def test_reclaiming_for_same_target_is_idempotent(self, storage):
        storage.put_index_entry(SOURCE_ID_INDEX, "crm-1", "s1")
        storage.put_index_entry(SOURCE_ID_INDEX, "crm-1", "s1")

        assert storage.get_index_entry(SOURCE_ID_INDEX, "crm-1") == "s1"

    def test_duplicate_key(self, storage):
        storage.put_index_entry(SOURCE_ID_INDEX, "crm-1", "s1")

        with pytest.raises(DuplicateKeyError):
            storage.put_index_entry(SOURCE_ID_INDEX, "crm-1", "s2")

        assert storage.get_index_entry(SOURCE_ID_INDEX, "crm-1") == "s1"

    def test_missing_entry(self, storage):
        with pytest.raises(StatusNotFoundError):
            storage.get_index_entry(TRACKING_ID_INDEX, "nope")

    def test_unknown_index(self, storage):
        with pytest.raises(ValueError, match="Unknown index"):
            storage.put_index_entry("email", "a@b.c", "s1")


class TestHistory:
    def test_append_and_list_in_order(self, storage):
        for n in range(3):
            storage.append_history("s1", {"history_id": f"h{n}", "n": n})
        storage.append_history("s2", {"history_id": "other", "n": 99})

        assert [e["n"] for e in storage.list_history("s1")] == [0, 1, 2]

    def test_empty_history(self, storage):
        assert storage.list_history("s1") == []


class TestAtomic:
    def test_commits_all_writes(self, storage):
        with storage.atomic():
            storage.put_index_entry(TRACKING_ID_INDEX, "t1", "s1")
            storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)
            storage.append_history("s1", {"history_id": "h1"})

        assert storage.get_index_entry(TRACKING_ID_INDEX, "t1") == "s1"
        assert storage.get_record("s1") == _doc("s1", 1)
        assert len(storage.list_history("s1")) == 1

    def test_rolls_back_every_write_on_error(self, storage):
        storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.put_index_entry(TRACKING_ID_INDEX, "t2", "s2")
                storage.put_record("s2", _doc("s2", 1), partition_key="c1", expected_version=0)
                storage.put_record("s1", _doc("s1", 2), partition_key="c9", expected_version=1)
                storage.append_history("s1", {"history_id": "h1"})
                raise RuntimeError("boom")

        assert storage.get_record("s1") == _doc("s1", 1)
        assert [d["status_id"] for d in storage.scan_by_partition("c1")] == ["s1"]
        assert storage.scan_by_partition("c9") == []
        assert storage.list_history("s1") == []
        with pytest.raises(StatusNotFoundError):
            storage.get_record("s2")
        with pytest.raises(StatusNotFoundError):
            storage.get_index_entry(TRACKING_ID_INDEX, "t2")

    def test_nested_blocks_join_the_outer_unit(self, storage):
        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)
                raise RuntimeError("boom")

        with pytest.raises(StatusNotFoundError):
            storage.get_record("s1")


class LockedDatabase(SQLiteDatabase):
    def get_connection(self):
        raise sqlite3.OperationalError("database is locked")


class TestSQLiteErrors:
    def test_operational_error_is_storage_unavailable(self):
        storage = SQLiteStatusStorage(LockedDatabase(":memory:"))

        with pytest.raises(StorageUnavailableError) as exc_info:
            storage.get_record("s1")

        assert exc_info.value.operation == "get_record"
        assert exc_info.value.retryable

    def test_file_database_survives_reopen(self, tmp_path):
        path = tmp_path / "status.db"
        storage = SQLiteStatusStorage(SQLiteDatabase(path))
        storage.initialize()
        storage.put_record("s1", _doc("s1", 1), partition_key="c1", expected_version=0)
        storage.close()

        reopened = SQLiteStatusStorage(SQLiteDatabase(path))
        reopened.initialize()

        assert reopened.get_record("s1") == _doc("s1", 1)
        reopened.close()
