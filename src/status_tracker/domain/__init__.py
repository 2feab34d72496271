from status_tracker.domain.status import (
    TRACKED_FIELDS,
    DetailValue,
    FieldChange,
    Status,
    StatusHistory,
    StatusPriority,
    StatusStage,
    StatusType,
)

__all__ = [
    "TRACKED_FIELDS",
    "DetailValue",
    "FieldChange",
    "Status",
    "StatusHistory",
    "StatusPriority",
    "StatusStage",
    "StatusType",
]
