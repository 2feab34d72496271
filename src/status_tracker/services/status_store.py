"""StatusStore: lifecycle, uniqueness and versioning of status records."""

from __future__ import annotations

import copy
import time
import uuid
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar

from status_tracker.domain.status import Status, StatusHistory, StatusStage
from status_tracker.exceptions import (
    DuplicateKeyError,
    StatusNotFoundError,
    StorageUnavailableError,
    ValidationError,
    VersionConflictError,
)
from status_tracker.logging_config import get_logger
from status_tracker.repositories.documents import (
    history_from_document,
    history_to_document,
    status_from_document,
    status_to_document,
)
from status_tracker.repositories.interfaces import (
    SOURCE_ID_INDEX,
    TRACKING_ID_INDEX,
    StatusStorage,
)
from status_tracker.schemas import StatusCreate, StatusPatch, validate_input
from status_tracker.services.history import HistoryRecorder
from status_tracker.services.tracking_ids import TrackingIdGenerator

logger = get_logger(__name__)

T = TypeVar("T")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _new_status_id() -> str:
    return str(uuid.uuid4())


class StatusStore:
    """Owns the canonical copy of every status and its history.

    Records, their secondary index entries and history entries are written
    through one ``storage.atomic()`` unit per operation. Every value handed
    back to callers is a fresh copy decoded from storage.

    Args:
        storage: Backend implementing the storage contract.
        tracking_ids: Generator used when a caller does not supply a
            tracking ID.
        history: Recorder producing one history entry per update.
        clock: Returns the current time.
        id_factory: Produces new status IDs.
        max_retries: Attempts per operation when storage is unavailable.
        retry_base_delay: First backoff delay in seconds, doubled per attempt.
        conflict_retries: Re-read/re-apply attempts for updates made without
            an expected version.
        sleep: Used for backoff waits.
    """

    def __init__(
        self,
        storage: StatusStorage,
        tracking_ids: TrackingIdGenerator | None = None,
        history: HistoryRecorder | None = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_status_id,
        max_retries: int = 3,
        retry_base_delay: float = 0.05,
        conflict_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._storage = storage
        self._tracking_ids = tracking_ids or TrackingIdGenerator(clock=clock)
        self._history = history or HistoryRecorder(clock=clock)
        self._clock = clock
        self._id_factory = id_factory
        self._max_retries = max(1, max_retries)
        self._retry_base_delay = retry_base_delay
        self._conflict_retries = max(0, conflict_retries)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Retry helpers
    # ------------------------------------------------------------------

    def _with_retry(self, operation: str, func: Callable[[], T]) -> T:
        """Run ``func``, retrying StorageUnavailableError with exponential backoff."""
        delay = self._retry_base_delay
        attempt = 1
        while True:
            try:
                return func()
            except StorageUnavailableError as e:
                if attempt >= self._max_retries:
                    logger.error(
                        "storage_unavailable",
                        operation=operation,
                        attempts=attempt,
                        error=e.message,
                    )
                    raise
                logger.warning(
                    "storage_retry",
                    operation=operation,
                    attempt=attempt,
                    delay=delay,
                    error=e.message,
                )
                self._sleep(delay)
                delay *= 2
                attempt += 1

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, fields: StatusCreate | Mapping[str, Any]) -> Status:
        """Create and persist a new status.

        Raises:
            ValidationError: If ``client_id`` is missing or input is malformed.
            DuplicateKeyError: If a supplied tracking or source ID is taken.
        """
        data = validate_input(StatusCreate, fields)
        status_id = self._id_factory()

        status = self._with_retry("create", lambda: self._insert(status_id, data))

        logger.info(
            "status_created",
            status_id=status.status_id,
            tracking_id=status.tracking_id,
            client_id=status.client_id,
        )
        return status

    def _insert(self, status_id: str, data: StatusCreate) -> Status:
        now = self._clock()
        with self._storage.atomic():
            if data.tracking_id is not None:
                tracking_id = data.tracking_id
                self._storage.put_index_entry(TRACKING_ID_INDEX, tracking_id, status_id)
            else:
                tracking_id = self._claim_generated_tracking_id(status_id)

            if data.source_id is not None:
                self._storage.put_index_entry(SOURCE_ID_INDEX, data.source_id, status_id)

            values = data.model_dump(exclude={"tracking_id", "current_stage"})
            status = Status(
                status_id=status_id,
                tracking_id=tracking_id,
                current_stage=data.current_stage or StatusStage.INITIATED.value,
                created_date=now,
                last_updated_date=now,
                last_updated_by=data.created_by,
                version=1,
                **values,
            )
            self._storage.put_record(
                status_id,
                status_to_document(status),
                partition_key=status.client_id,
                expected_version=0,
            )
        return status.copy()

    def _claim_generated_tracking_id(self, status_id: str) -> str:
        # No attempt limit; each collision is logged and a fresh ID drawn.
        while True:
            candidate = self._tracking_ids.generate()
            try:
                self._storage.put_index_entry(TRACKING_ID_INDEX, candidate, status_id)
            except DuplicateKeyError:
                logger.debug("tracking_id_collision", tracking_id=candidate)
                continue
            return candidate

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, status_id: str) -> Status:
        """Raises StatusNotFoundError if no status has this ID."""
        if not status_id:
            raise ValidationError("status_id is required", field="status_id")
        document = self._with_retry(
            "get_by_id", lambda: self._storage.get_record(status_id)
        )
        return status_from_document(document)

    def get_by_tracking_id(self, tracking_id: str) -> Status:
        return self._get_by_index(TRACKING_ID_INDEX, tracking_id)

    def get_by_source_id(self, source_id: str) -> Status:
        return self._get_by_index(SOURCE_ID_INDEX, source_id)

    def _get_by_index(self, index_name: str, key: str) -> Status:
        if not key:
            raise ValidationError(f"{index_name} is required", field=index_name)

        def lookup() -> Status:
            status_id = self._storage.get_index_entry(index_name, key)
            try:
                document = self._storage.get_record(status_id)
            except StatusNotFoundError:
                logger.error(
                    "index_target_missing", index=index_name, key=key, status_id=status_id
                )
                raise StatusNotFoundError(key, key_type=index_name) from None
            return status_from_document(document)

        status = self._with_retry(f"get_by_{index_name}", lookup)
        if getattr(status, index_name) != key:
            logger.error(
                "index_record_mismatch",
                index=index_name,
                key=key,
                status_id=status.status_id,
            )
            raise StatusNotFoundError(key, key_type=index_name)
        return status

    def list_by_client(self, client_id: str, status_type: str | None = None) -> list[Status]:
        """Statuses owned by ``client_id``, oldest first. Empty if none."""
        if not client_id:
            raise ValidationError("client_id is required", field="client_id")
        documents = self._with_retry(
            "list_by_client", lambda: self._storage.scan_by_partition(client_id)
        )
        statuses = [status_from_document(document) for document in documents]
        # Partition membership is re-checked against the record itself.
        statuses = [s for s in statuses if s.client_id == client_id]
        if status_type is not None:
            statuses = [s for s in statuses if s.status_type == status_type]
        return sorted(statuses, key=lambda s: (s.created_date, s.status_id))

    def all_statuses(self) -> list[Status]:
        """Every stored status, in no particular order."""
        documents = self._with_retry(
            "scan_all", lambda: list(self._storage.scan_all())
        )
        return [status_from_document(document) for document in documents]

    def get_history(self, status_id: str) -> list[StatusHistory]:
        """History entries for a status, oldest first."""
        if not status_id:
            raise ValidationError("status_id is required", field="status_id")

        def load() -> list[dict[str, Any]]:
            self._storage.get_record(status_id)
            return list(self._storage.list_history(status_id))

        documents = self._with_retry("get_history", load)
        return [history_from_document(document) for document in documents]

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(
        self,
        status_id: str,
        partial_fields: StatusPatch | Mapping[str, Any],
        updated_by: str,
        expected_version: int | None = None,
    ) -> Status:
        """Apply a sparse patch and append one history entry.

        With ``expected_version`` the update only succeeds against that exact
        stored version. Without it, a concurrent write detected at commit is
        absorbed by re-reading and re-applying the patch a bounded number of
        times.

        Raises:
            StatusNotFoundError: If the status does not exist.
            VersionConflictError: If the stored version has moved on.
            ValidationError: If the patch is malformed or touches an
                immutable field.
        """
        if not status_id:
            raise ValidationError("status_id is required", field="status_id")
        if not updated_by:
            raise ValidationError("updated_by is required", field="updated_by")
        if expected_version is not None and expected_version < 1:
            raise ValidationError(
                "expected_version must be a positive integer", field="expected_version"
            )
        patch = validate_input(StatusPatch, partial_fields)

        conflicts = 0
        while True:
            try:
                updated, entry = self._with_retry(
                    "update",
                    lambda: self._apply_patch(status_id, patch, updated_by, expected_version),
                )
                break
            except VersionConflictError as e:
                if expected_version is not None or conflicts >= self._conflict_retries:
                    logger.warning(
                        "version_conflict",
                        status_id=status_id,
                        expected_version=e.expected_version,
                        actual_version=e.actual_version,
                    )
                    raise
                conflicts += 1
                logger.info(
                    "version_conflict_retry", status_id=status_id, attempt=conflicts
                )

        logger.info(
            "status_updated",
            status_id=status_id,
            version=updated.version,
            changed_fields=entry.field_names,
            updated_by=updated_by,
        )
        return updated

    def _apply_patch(
        self,
        status_id: str,
        patch: StatusPatch,
        updated_by: str,
        expected_version: int | None,
    ) -> tuple[Status, StatusHistory]:
        with self._storage.atomic():
            current = status_from_document(self._storage.get_record(status_id))
            if expected_version is not None and current.version != expected_version:
                raise VersionConflictError(status_id, expected_version, current.version)

            updated = current.copy()
            for name, value in patch.changes().items():
                if name == "metadata":
                    merged = dict(updated.metadata)
                    merged.update(copy.deepcopy(value))
                    updated.metadata = merged
                else:
                    setattr(updated, name, copy.deepcopy(value))

            # lastUpdatedDate never moves behind an earlier write
            now = max(self._clock(), current.last_updated_date)
            updated.last_updated_date = now
            updated.last_updated_by = updated_by
            updated.version = current.version + 1

            entry = self._history.diff(
                current,
                updated,
                changed_by=updated_by,
                reason=patch.change_reason,
                description=patch.change_description,
                timestamp=now,
            )
            self._storage.put_record(
                status_id,
                status_to_document(updated),
                partition_key=updated.client_id,
                expected_version=current.version,
            )
            self._storage.append_history(status_id, history_to_document(entry))
        return updated.copy(), entry
