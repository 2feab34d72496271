"""Status and status history domain models."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Union


def _utc_now() -> datetime:
    return datetime.now(UTC)


# JSON-like value carried by status_details and metadata.
DetailValue = Union[
    str, int, float, bool, None, dict[str, "DetailValue"], list["DetailValue"]
]


class StatusStage(str, Enum):
    """Stages used by the advisory workflows.

    Stages are free-form on a Status; these are the well-known labels.
    """

    INITIATED = "initiated"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    PENDING_CLIENT_ACTION = "pending_client_action"
    PENDING_ADVISOR_ACTION = "pending_advisor_action"
    PENDING_THIRD_PARTY = "pending_third_party"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


class StatusType(str, Enum):
    ACCOUNT_OPENING = "account_opening"
    PORTFOLIO_REVIEW = "portfolio_review"
    FINANCIAL_PLAN = "financial_plan"
    TRADE_EXECUTION = "trade_execution"
    FUND_TRANSFER = "fund_transfer"
    TAX_DOCUMENT = "tax_document"
    COMPLIANCE_CHECK = "compliance_check"
    CLIENT_MEETING = "client_meeting"


class StatusPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


@dataclass
class Status:
    """A tracked workflow record owned by a client.

    ``version`` starts at 1 when the record is first stored and increments
    on every successful update.
    """

    status_id: str
    client_id: str
    tracking_id: str
    source_id: str | None = None
    status_type: str | None = None
    category: str | None = None
    sub_category: str | None = None
    priority: str | None = None
    current_stage: str = StatusStage.INITIATED.value
    status_summary: str | None = None
    status_details: dict[str, DetailValue] = field(default_factory=dict)
    advisor_id: str | None = None
    household_id: str | None = None
    related_client_ids: set[str] = field(default_factory=set)
    beneficiary_ids: set[str] = field(default_factory=set)
    relationship_types: dict[str, str] = field(default_factory=dict)
    related_documents: list[str] = field(default_factory=list)
    required_actions: list[str] = field(default_factory=list)
    completed_actions: list[str] = field(default_factory=list)
    estimated_completion_date: date | None = None
    actual_completion_date: date | None = None
    created_date: datetime = field(default_factory=_utc_now)
    created_by: str | None = None
    last_updated_date: datetime = field(default_factory=_utc_now)
    last_updated_by: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, DetailValue] = field(default_factory=dict)
    version: int = 0

    @property
    def is_closed(self) -> bool:
        return self.current_stage in (
            StatusStage.COMPLETED.value,
            StatusStage.CANCELLED.value,
        )

    def tracked_values(self) -> dict[str, Any]:
        """Values of every field that participates in change history."""
        return {name: getattr(self, name) for name in TRACKED_FIELDS}

    def copy(self) -> Status:
        return copy.deepcopy(self)


# Provenance, identity and versioning fields are not diffed.
UNTRACKED_FIELDS = frozenset(
    {
        "status_id",
        "created_date",
        "created_by",
        "last_updated_date",
        "last_updated_by",
        "version",
    }
)

TRACKED_FIELDS: tuple[str, ...] = tuple(
    f.name for f in fields(Status) if f.name not in UNTRACKED_FIELDS
)


@dataclass(frozen=True)
class FieldChange:
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class StatusHistory:
    """Immutable audit record of one change to a status."""

    history_id: str
    status_id: str
    timestamp: datetime
    changed_by: str | None
    previous_stage: str
    new_stage: str
    change_reason: str | None = None
    change_description: str | None = None
    changed_fields: dict[str, FieldChange] = field(default_factory=dict)

    @property
    def stage_changed(self) -> bool:
        return self.previous_stage != self.new_stage

    @property
    def field_names(self) -> list[str]:
        return sorted(self.changed_fields)
