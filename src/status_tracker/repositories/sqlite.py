"""SQLite implementation of the storage contract."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from status_tracker.exceptions import (
    DuplicateKeyError,
    StatusNotFoundError,
    StorageUnavailableError,
    VersionConflictError,
)
from status_tracker.repositories.interfaces import (
    Document,
    StatusStorage,
    check_index_name,
)


class SQLiteDatabase:
    """SQLite database connection manager."""

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = False
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path, check_same_thread=self._check_same_thread, timeout=5.0
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Status records, one JSON document per status
            CREATE TABLE IF NOT EXISTS status_records (
                status_id TEXT PRIMARY KEY,
                client_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                document TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_status_records_client ON status_records(client_id);

            -- Unique secondary keys (tracking_id, source_id)
            CREATE TABLE IF NOT EXISTS status_index_entries (
                index_name TEXT NOT NULL,
                index_key TEXT NOT NULL,
                status_id TEXT NOT NULL,
                PRIMARY KEY (index_name, index_key)
            );

            -- Append-only change history
            CREATE TABLE IF NOT EXISTS status_history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                history_id TEXT NOT NULL UNIQUE,
                status_id TEXT NOT NULL,
                document TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_status_history_status ON status_history(status_id);
            """
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SQLiteStatusStorage(StatusStorage):
    """Status storage on a single SQLite connection.

    Each call commits on its own unless it runs inside ``atomic()``, in which
    case the whole block commits or rolls back together.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database
        self._lock = threading.RLock()
        self._in_atomic = False

    def initialize(self) -> None:
        with self._lock, self._translate_errors("initialize"):
            self._db.initialize()

    def close(self) -> None:
        with self._lock:
            self._db.close()

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.OperationalError as e:
            raise StorageUnavailableError(str(e), operation=operation) from e

    def _commit(self) -> None:
        if not self._in_atomic:
            self._db.get_connection().commit()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            if self._in_atomic:
                yield
                return
            conn = self._db.get_connection()
            self._in_atomic = True
            try:
                yield
                with self._translate_errors("commit"):
                    conn.commit()
            except BaseException:
                conn.rollback()
                raise
            finally:
                self._in_atomic = False

    def put_record(
        self,
        key: str,
        value: Document,
        *,
        partition_key: str,
        expected_version: int,
    ) -> None:
        with self._lock, self._translate_errors("put_record"):
            conn = self._db.get_connection()
            document = json.dumps(value, sort_keys=True)
            if expected_version == 0:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO status_records (status_id, client_id, version, document)
                    VALUES (?, ?, ?, ?)
                    """,
                    (key, partition_key, value["version"], document),
                )
            else:
                cursor = conn.execute(
                    """
                    UPDATE status_records SET
                        client_id = ?,
                        version = ?,
                        document = ?
                    WHERE status_id = ? AND version = ?
                    """,
                    (partition_key, value["version"], document, key, expected_version),
                )
            if cursor.rowcount != 1:
                row = conn.execute(
                    "SELECT version FROM status_records WHERE status_id = ?", (key,)
                ).fetchone()
                raise VersionConflictError(
                    key, expected_version, row["version"] if row else None
                )
            self._commit()

    def get_record(self, key: str) -> Document:
        with self._lock, self._translate_errors("get_record"):
            conn = self._db.get_connection()
            row = conn.execute(
                "SELECT document FROM status_records WHERE status_id = ?", (key,)
            ).fetchone()
        if row is None:
            raise StatusNotFoundError(key)
        return json.loads(row["document"])

    def put_index_entry(self, index_name: str, index_key: str, target_key: str) -> None:
        check_index_name(index_name)
        with self._lock, self._translate_errors("put_index_entry"):
            conn = self._db.get_connection()
            conn.execute(
                """
                INSERT OR IGNORE INTO status_index_entries (index_name, index_key, status_id)
                VALUES (?, ?, ?)
                """,
                (index_name, index_key, target_key),
            )
            row = conn.execute(
                """
                SELECT status_id FROM status_index_entries
                WHERE index_name = ? AND index_key = ?
                """,
                (index_name, index_key),
            ).fetchone()
            if row["status_id"] != target_key:
                raise DuplicateKeyError(index_name, index_key)
            self._commit()

    def get_index_entry(self, index_name: str, index_key: str) -> str:
        check_index_name(index_name)
        with self._lock, self._translate_errors("get_index_entry"):
            row = self._db.get_connection().execute(
                """
                SELECT status_id FROM status_index_entries
                WHERE index_name = ? AND index_key = ?
                """,
                (index_name, index_key),
            ).fetchone()
        if row is None:
            raise StatusNotFoundError(index_key, key_type=index_name)
        return row["status_id"]

    def scan_by_partition(self, partition_key: str) -> Sequence[Document]:
        with self._lock, self._translate_errors("scan_by_partition"):
            rows = self._db.get_connection().execute(
                "SELECT document FROM status_records WHERE client_id = ?",
                (partition_key,),
            ).fetchall()
        return [json.loads(row["document"]) for row in rows]

    def scan_all(self) -> Iterator[Document]:
        with self._lock, self._translate_errors("scan_all"):
            rows = self._db.get_connection().execute(
                "SELECT document FROM status_records"
            ).fetchall()
        return (json.loads(row["document"]) for row in rows)

    def append_history(self, key: str, entry: Document) -> None:
        with self._lock, self._translate_errors("append_history"):
            self._db.get_connection().execute(
                """
                INSERT INTO status_history (history_id, status_id, document)
                VALUES (?, ?, ?)
                """,
                (entry["history_id"], key, json.dumps(entry, sort_keys=True)),
            )
            self._commit()

    def list_history(self, key: str) -> Sequence[Document]:
        with self._lock, self._translate_errors("list_history"):
            rows = self._db.get_connection().execute(
                "SELECT document FROM status_history WHERE status_id = ? ORDER BY seq",
                (key,),
            ).fetchall()
        return [json.loads(row["document"]) for row in rows]
