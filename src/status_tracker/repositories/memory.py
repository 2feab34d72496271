"""In-memory storage backend, used for tests and local runs."""

from __future__ import annotations

import copy
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager

from status_tracker.exceptions import (
    DuplicateKeyError,
    StatusNotFoundError,
    VersionConflictError,
)
from status_tracker.repositories.interfaces import (
    INDEX_NAMES,
    Document,
    StatusStorage,
    check_index_name,
)


class InMemoryStatusStorage(StatusStorage):
    """Dict-backed storage honouring the same contract as the SQL backends.

    A re-entrant lock serialises access; ``atomic()`` keeps an undo journal
    that is replayed in reverse if the block raises.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, Document] = {}
        self._partitions: dict[str, str] = {}
        self._indexes: dict[str, dict[str, str]] = {name: {} for name in INDEX_NAMES}
        self._history: dict[str, list[Document]] = {}
        self._journal: list[Callable[[], None]] | None = None

    def initialize(self) -> None:
        pass

    def close(self) -> None:
        pass

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            if self._journal is not None:
                yield
                return
            self._journal = []
            try:
                yield
            except BaseException:
                for undo in reversed(self._journal):
                    undo()
                raise
            finally:
                self._journal = None

    def _on_rollback(self, undo: Callable[[], None]) -> None:
        if self._journal is not None:
            self._journal.append(undo)

    def put_record(
        self,
        key: str,
        value: Document,
        *,
        partition_key: str,
        expected_version: int,
    ) -> None:
        with self._lock:
            current = self._records.get(key)
            actual = current["version"] if current is not None else 0
            if actual != expected_version:
                raise VersionConflictError(
                    key, expected_version, actual if current is not None else None
                )
            previous_partition = self._partitions.get(key)
            self._records[key] = copy.deepcopy(value)
            self._partitions[key] = partition_key

            def undo() -> None:
                if current is None:
                    self._records.pop(key, None)
                    self._partitions.pop(key, None)
                else:
                    self._records[key] = current
                    self._partitions[key] = previous_partition

            self._on_rollback(undo)

    def get_record(self, key: str) -> Document:
        with self._lock:
            document = self._records.get(key)
            if document is None:
                raise StatusNotFoundError(key)
            return copy.deepcopy(document)

    def put_index_entry(self, index_name: str, index_key: str, target_key: str) -> None:
        check_index_name(index_name)
        with self._lock:
            index = self._indexes[index_name]
            existing = index.get(index_key)
            if existing is not None:
                if existing != target_key:
                    raise DuplicateKeyError(index_name, index_key)
                return
            index[index_key] = target_key
            self._on_rollback(lambda: index.pop(index_key, None))

    def get_index_entry(self, index_name: str, index_key: str) -> str:
        check_index_name(index_name)
        with self._lock:
            target = self._indexes[index_name].get(index_key)
            if target is None:
                raise StatusNotFoundError(index_key, key_type=index_name)
            return target

    def scan_by_partition(self, partition_key: str) -> Sequence[Document]:
        with self._lock:
            return [
                copy.deepcopy(document)
                for key, document in self._records.items()
                if self._partitions.get(key) == partition_key
            ]

    def scan_all(self) -> Iterator[Document]:
        with self._lock:
            snapshot = [copy.deepcopy(document) for document in self._records.values()]
        return iter(snapshot)

    def append_history(self, key: str, entry: Document) -> None:
        with self._lock:
            entries = self._history.setdefault(key, [])
            entries.append(copy.deepcopy(entry))
            self._on_rollback(entries.pop)

    def list_history(self, key: str) -> Sequence[Document]:
        with self._lock:
            return [copy.deepcopy(entry) for entry in self._history.get(key, [])]
