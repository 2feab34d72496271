"""Mapping between domain objects and the JSON documents kept by storage."""

from __future__ import annotations

import copy
from dataclasses import fields
from datetime import date, datetime
from typing import Any

from status_tracker.domain.status import FieldChange, Status, StatusHistory

SET_FIELDS = frozenset({"related_client_ids", "beneficiary_ids"})
DATE_FIELDS = frozenset({"estimated_completion_date", "actual_completion_date"})
DATETIME_FIELDS = frozenset({"created_date", "last_updated_date"})

_STATUS_FIELD_NAMES = tuple(f.name for f in fields(Status))


def encode_field(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in SET_FIELDS:
        return sorted(value)
    if name in DATE_FIELDS or name in DATETIME_FIELDS:
        return value.isoformat()
    return copy.deepcopy(value)


def decode_field(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name in SET_FIELDS:
        return set(value)
    if name in DATE_FIELDS:
        return date.fromisoformat(value)
    if name in DATETIME_FIELDS:
        return datetime.fromisoformat(value)
    return copy.deepcopy(value)


def status_to_document(status: Status) -> dict[str, Any]:
    return {name: encode_field(name, getattr(status, name)) for name in _STATUS_FIELD_NAMES}


def status_from_document(document: dict[str, Any]) -> Status:
    values = {
        name: decode_field(name, document[name])
        for name in _STATUS_FIELD_NAMES
        if name in document
    }
    return Status(**values)


def history_to_document(entry: StatusHistory) -> dict[str, Any]:
    return {
        "history_id": entry.history_id,
        "status_id": entry.status_id,
        "timestamp": entry.timestamp.isoformat(),
        "changed_by": entry.changed_by,
        "previous_stage": entry.previous_stage,
        "new_stage": entry.new_stage,
        "change_reason": entry.change_reason,
        "change_description": entry.change_description,
        "changed_fields": {
            name: {
                "old_value": encode_field(name, change.old_value),
                "new_value": encode_field(name, change.new_value),
            }
            for name, change in entry.changed_fields.items()
        },
    }


def history_from_document(document: dict[str, Any]) -> StatusHistory:
    return StatusHistory(
        history_id=document["history_id"],
        status_id=document["status_id"],
        timestamp=datetime.fromisoformat(document["timestamp"]),
        changed_by=document.get("changed_by"),
        previous_stage=document["previous_stage"],
        new_stage=document["new_stage"],
        change_reason=document.get("change_reason"),
        change_description=document.get("change_description"),
        changed_fields={
            name: FieldChange(
                old_value=decode_field(name, change["old_value"]),
                new_value=decode_field(name, change["new_value"]),
            )
            for name, change in document.get("changed_fields", {}).items()
        },
    )
