"""Exception hierarchy for the status tracking engine.

All engine exceptions inherit from StatusTrackerError so callers can catch
every engine failure with one base class while still dispatching on the
specific type. ``retryable`` tells the caller whether repeating the same
operation (after a fresh read) can succeed.
"""

from typing import Any


class StatusTrackerError(Exception):
    """Base exception for all status tracker errors."""

    error_code: str = "STATUS_TRACKER_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a plain dictionary for the calling layer."""
        return {
            "error": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
        }


class ValidationError(StatusTrackerError):
    """Raised when input is malformed or a required field is missing."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        context = {"field": field} if field else None
        super().__init__(message, context=context)
        self.field = field


class StatusNotFoundError(StatusTrackerError):
    """Raised when an operation targets a key that does not exist."""

    error_code = "STATUS_NOT_FOUND"

    def __init__(self, key: str, *, key_type: str = "status_id") -> None:
        super().__init__(
            f"Status not found for {key_type}: {key}",
            context={"key_type": key_type, "key": key},
        )
        self.key = key
        self.key_type = key_type


class DuplicateKeyError(StatusTrackerError):
    """Raised when a unique secondary key is already taken."""

    error_code = "DUPLICATE_KEY"

    def __init__(self, index_name: str, key: str) -> None:
        super().__init__(
            f"Duplicate {index_name}: {key}",
            context={"index": index_name, "key": key},
        )
        self.index_name = index_name
        self.key = key


class VersionConflictError(StatusTrackerError):
    """Raised when the stored version differs from the expected one."""

    error_code = "VERSION_CONFLICT"
    retryable = True

    def __init__(
        self, status_id: str, expected_version: int, actual_version: int | None
    ) -> None:
        super().__init__(
            f"Version conflict on status {status_id}: "
            f"expected {expected_version}, found {actual_version}",
            context={
                "status_id": status_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.status_id = status_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class StorageUnavailableError(StatusTrackerError):
    """Raised when the storage backend fails transiently."""

    error_code = "STORAGE_UNAVAILABLE"
    retryable = True

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        context = {"operation": operation} if operation else None
        super().__init__(f"Storage unavailable: {message}", context=context)
        self.operation = operation
