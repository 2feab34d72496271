"""Storage contract consumed by the status store.

Backends keep status records as JSON documents keyed by ``status_id``,
unique secondary indexes mapping an alternate key to a ``status_id``, a
client partition carried on each record, and an append-only history list
per record.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager
from typing import Any

TRACKING_ID_INDEX = "tracking_id"
SOURCE_ID_INDEX = "source_id"
INDEX_NAMES = (TRACKING_ID_INDEX, SOURCE_ID_INDEX)

Document = dict[str, Any]


class StatusStorage(ABC):
    @abstractmethod
    def initialize(self) -> None:
        """Create tables or structures the backend needs."""

    @abstractmethod
    def atomic(self) -> AbstractContextManager[None]:
        """Group the writes made inside the block into one all-or-nothing unit.

        Any exception raised inside the block discards every write made in it.
        """

    @abstractmethod
    def put_record(
        self,
        key: str,
        value: Document,
        *,
        partition_key: str,
        expected_version: int,
    ) -> None:
        """Compare-and-swap write of a record.

        ``expected_version`` 0 means the record must not exist yet. Otherwise
        the stored ``version`` must equal it.

        Raises:
            VersionConflictError: If the stored version does not match.
        """

    @abstractmethod
    def get_record(self, key: str) -> Document:
        """Raises StatusNotFoundError if absent."""

    @abstractmethod
    def put_index_entry(self, index_name: str, index_key: str, target_key: str) -> None:
        """Raises DuplicateKeyError if ``index_key`` maps to another target."""

    @abstractmethod
    def get_index_entry(self, index_name: str, index_key: str) -> str:
        """Raises StatusNotFoundError if absent."""

    @abstractmethod
    def scan_by_partition(self, partition_key: str) -> Sequence[Document]:
        pass

    @abstractmethod
    def scan_all(self) -> Iterator[Document]:
        pass

    @abstractmethod
    def append_history(self, key: str, entry: Document) -> None:
        pass

    @abstractmethod
    def list_history(self, key: str) -> Sequence[Document]:
        """History documents for a record, oldest first."""

    @abstractmethod
    def close(self) -> None:
        pass


def check_index_name(index_name: str) -> None:
    if index_name not in INDEX_NAMES:
        raise ValueError(f"Unknown index: {index_name}")
