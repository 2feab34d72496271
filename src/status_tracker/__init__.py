from status_tracker.domain.status import (
    FieldChange,
    Status,
    StatusHistory,
    StatusPriority,
    StatusStage,
    StatusType,
)
from status_tracker.exceptions import (
    DuplicateKeyError,
    StatusNotFoundError,
    StatusTrackerError,
    StorageUnavailableError,
    ValidationError,
    VersionConflictError,
)
from status_tracker.schemas import SearchCriteria, StatusCreate, StatusPatch
from status_tracker.services.history import HistoryRecorder
from status_tracker.services.search import SearchEngine
from status_tracker.services.status_store import StatusStore
from status_tracker.services.tracking_ids import TrackingIdGenerator

__all__ = [
    "DuplicateKeyError",
    "FieldChange",
    "HistoryRecorder",
    "SearchCriteria",
    "SearchEngine",
    "Status",
    "StatusCreate",
    "StatusHistory",
    "StatusNotFoundError",
    "StatusPatch",
    "StatusPriority",
    "StatusStage",
    "StatusStore",
    "StatusTrackerError",
    "StatusType",
    "StorageUnavailableError",
    "TrackingIdGenerator",
    "ValidationError",
    "VersionConflictError",
]

__version__ = "0.1.0"
