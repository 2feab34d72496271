"""Field-level change history between two versions of a status."""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from status_tracker.domain.status import (
    TRACKED_FIELDS,
    FieldChange,
    Status,
    StatusHistory,
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _new_history_id() -> str:
    return str(uuid.uuid4())


def values_equal(old: Any, new: Any) -> bool:
    """Value equality, with lists compared element-wise and maps/sets by content.

    Dates and datetimes compare by value; ``None`` and an empty collection are
    different values.
    """
    if isinstance(old, (set, frozenset)) or isinstance(new, (set, frozenset)):
        if not isinstance(old, (set, frozenset)) or not isinstance(new, (set, frozenset)):
            return False
        return set(old) == set(new)
    if isinstance(old, dict) and isinstance(new, dict):
        if old.keys() != new.keys():
            return False
        return all(values_equal(old[k], new[k]) for k in old)
    if isinstance(old, list) and isinstance(new, list):
        if len(old) != len(new):
            return False
        return all(values_equal(a, b) for a, b in zip(old, new))
    if isinstance(old, bool) != isinstance(new, bool):
        return False
    return old == new


class HistoryRecorder:
    """Builds one StatusHistory entry from a before/after pair of snapshots."""

    def __init__(
        self,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_history_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory

    def changed_fields(self, previous: Status, current: Status) -> dict[str, FieldChange]:
        before = previous.tracked_values()
        after = current.tracked_values()
        changes: dict[str, FieldChange] = {}
        for name in TRACKED_FIELDS:
            if not values_equal(before[name], after[name]):
                changes[name] = FieldChange(
                    old_value=copy.deepcopy(before[name]),
                    new_value=copy.deepcopy(after[name]),
                )
        return changes

    def diff(
        self,
        previous: Status,
        current: Status,
        changed_by: str | None,
        reason: str | None = None,
        description: str | None = None,
        timestamp: datetime | None = None,
    ) -> StatusHistory:
        """Record every tracked field that differs between the two snapshots.

        Identical snapshots yield an entry with an empty ``changed_fields``
        and equal stages.
        """
        return StatusHistory(
            history_id=self._id_factory(),
            status_id=current.status_id,
            timestamp=timestamp or self._clock(),
            changed_by=changed_by,
            previous_stage=previous.current_stage,
            new_stage=current.current_stage,
            change_reason=reason,
            change_description=description,
            changed_fields=self.changed_fields(previous, current),
        )
