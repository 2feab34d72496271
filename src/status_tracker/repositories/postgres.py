"""PostgreSQL implementation of the storage contract."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import psycopg2
import psycopg2.extras

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


class PostgresDatabase:
    """PostgreSQL database connection manager."""

    def __init__(self, connection_string: str) -> None:
        self._connection_string = connection_string
        self._connection: psycopg2.extensions.connection | None = None

    def get_connection(self) -> psycopg2.extensions.connection:
        """Get or create the database connection."""
        if self._connection is None or self._connection.closed:
            self._connection = psycopg2.connect(
                self._connection_string,
                cursor_factory=psycopg2.extras.RealDictCursor,
            )
        return self._connection

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        with conn.cursor() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS status_records (
                    status_id TEXT PRIMARY KEY,
                    client_id TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    document JSONB NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_status_records_client ON status_records(client_id);

                CREATE TABLE IF NOT EXISTS status_index_entries (
                    index_name TEXT NOT NULL,
                    index_key TEXT NOT NULL,
                    status_id TEXT NOT NULL,
                    PRIMARY KEY (index_name, index_key)
                );

                CREATE TABLE IF NOT EXISTS status_history (
                    seq BIGSERIAL PRIMARY KEY,
                    history_id TEXT NOT NULL UNIQUE,
                    status_id TEXT NOT NULL,
                    document JSONB NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_status_history_status ON status_history(status_id);
                """
            )
        conn.commit()

    def close(self) -> None:
        if self._connection is not None and not self._connection.closed:
            self._connection.close()
        self._connection = None


class PostgresStatusStorage(StatusStorage):
    """Status storage on a single PostgreSQL connection.

    Outside ``atomic()`` every call runs in its own transaction.
    """

    def __init__(self, database: PostgresDatabase) -> None:
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
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StorageUnavailableError(str(e), operation=operation) from e

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[psycopg2.extras.RealDictCursor]:
        """Cursor for one call; commits or rolls back unless inside atomic()."""
        with self._lock, self._translate_errors(operation):
            conn = self._db.get_connection()
            try:
                with conn.cursor() as cur:
                    yield cur
                if not self._in_atomic:
                    conn.commit()
            except BaseException:
                if not self._in_atomic and not conn.closed:
                    conn.rollback()
                raise

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
                if not conn.closed:
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
        with self._cursor("put_record") as cur:
            document = psycopg2.extras.Json(value)
            if expected_version == 0:
                cur.execute(
                    """
                    INSERT INTO status_records (status_id, client_id, version, document)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (status_id) DO NOTHING
                    """,
                    (key, partition_key, value["version"], document),
                )
            else:
                cur.execute(
                    """
                    UPDATE status_records SET
                        client_id = %s,
                        version = %s,
                        document = %s
                    WHERE status_id = %s AND version = %s
                    """,
                    (partition_key, value["version"], document, key, expected_version),
                )
            if cur.rowcount != 1:
                cur.execute(
                    "SELECT version FROM status_records WHERE status_id = %s", (key,)
                )
                row = cur.fetchone()
                raise VersionConflictError(
                    key, expected_version, row["version"] if row else None
                )

    def get_record(self, key: str) -> Document:
        with self._cursor("get_record") as cur:
            cur.execute(
                "SELECT document FROM status_records WHERE status_id = %s", (key,)
            )
            row = cur.fetchone()
        if row is None:
            raise StatusNotFoundError(key)
        return row["document"]

    def put_index_entry(self, index_name: str, index_key: str, target_key: str) -> None:
        check_index_name(index_name)
        with self._cursor("put_index_entry") as cur:
            cur.execute(
                """
                INSERT INTO status_index_entries (index_name, index_key, status_id)
                VALUES (%s, %s, %s)
                ON CONFLICT (index_name, index_key) DO NOTHING
                """,
                (index_name, index_key, target_key),
            )
            cur.execute(
                """
                SELECT status_id FROM status_index_entries
                WHERE index_name = %s AND index_key = %s
                """,
                (index_name, index_key),
            )
            row = cur.fetchone()
            if row["status_id"] != target_key:
                raise DuplicateKeyError(index_name, index_key)

    def get_index_entry(self, index_name: str, index_key: str) -> str:
        check_index_name(index_name)
        with self._cursor("get_index_entry") as cur:
            cur.execute(
                """
                SELECT status_id FROM status_index_entries
                WHERE index_name = %s AND index_key = %s
                """,
                (index_name, index_key),
            )
            row = cur.fetchone()
        if row is None:
            raise StatusNotFoundError(index_key, key_type=index_name)
        return row["status_id"]

    def scan_by_partition(self, partition_key: str) -> Sequence[Document]:
        with self._cursor("scan_by_partition") as cur:
            cur.execute(
                "SELECT document FROM status_records WHERE client_id = %s",
                (partition_key,),
            )
            rows = cur.fetchall()
        return [row["document"] for row in rows]

    def scan_all(self) -> Iterator[Document]:
        with self._cursor("scan_all") as cur:
            cur.execute("SELECT document FROM status_records")
            rows = cur.fetchall()
        return (row["document"] for row in rows)

    def append_history(self, key: str, entry: Document) -> None:
        with self._cursor("append_history") as cur:
            cur.execute(
                """
                INSERT INTO status_history (history_id, status_id, document)
                VALUES (%s, %s, %s)
                """,
                (entry["history_id"], key, psycopg2.extras.Json(entry)),
            )

    def list_history(self, key: str) -> Sequence[Document]:
        with self._cursor("list_history") as cur:
            cur.execute(
                "SELECT document FROM status_history WHERE status_id = %s ORDER BY seq",
                (key,),
            )
            rows = cur.fetchall()
        return [row["document"] for row in rows]
