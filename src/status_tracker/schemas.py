"""Pydantic v2 input models for the store and search operations.

Inputs accept either snake_case field names or their camelCase aliases
(``clientId``, ``trackingId``, ``textSearch``...), and unknown keys are
rejected.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel, to_snake

from status_tracker.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

_INPUT_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
)

IMMUTABLE_FIELDS = frozenset(
    {
        "status_id",
        "tracking_id",
        "source_id",
        "version",
        "created_date",
        "created_by",
        "last_updated_date",
        "last_updated_by",
    }
)

# History annotations carried by a patch; not Status fields.
CHANGE_NOTE_FIELDS = frozenset({"change_reason", "change_description"})


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class StatusCreate(BaseModel):
    """Fields accepted when creating a status."""

    model_config = _INPUT_CONFIG

    client_id: str = Field(..., min_length=1)
    tracking_id: str | None = Field(default=None, min_length=1, max_length=64)
    source_id: str | None = Field(default=None, min_length=1)
    status_type: str | None = None
    category: str | None = None
    sub_category: str | None = None
    priority: str | None = None
    current_stage: str | None = Field(default=None, min_length=1)
    status_summary: str | None = None
    status_details: dict[str, JsonValue] = Field(default_factory=dict)
    advisor_id: str | None = None
    household_id: str | None = None
    related_client_ids: set[str] = Field(default_factory=set)
    beneficiary_ids: set[str] = Field(default_factory=set)
    relationship_types: dict[str, str] = Field(default_factory=dict)
    related_documents: list[str] = Field(default_factory=list)
    required_actions: list[str] = Field(default_factory=list)
    completed_actions: list[str] = Field(default_factory=list)
    estimated_completion_date: date | None = None
    actual_completion_date: date | None = None
    created_by: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, JsonValue] = Field(default_factory=dict)

    @field_validator("client_id")
    @classmethod
    def reject_blank_client_id(cls, v: str) -> str:
        return _require_text(v)


class StatusPatch(BaseModel):
    """Sparse update: only the fields actually supplied are applied."""

    model_config = _INPUT_CONFIG

    client_id: str | None = Field(default=None, min_length=1)
    status_type: str | None = None
    category: str | None = None
    sub_category: str | None = None
    priority: str | None = None
    current_stage: str | None = Field(default=None, min_length=1)
    status_summary: str | None = None
    status_details: dict[str, JsonValue] = Field(default_factory=dict)
    advisor_id: str | None = None
    household_id: str | None = None
    related_client_ids: set[str] = Field(default_factory=set)
    beneficiary_ids: set[str] = Field(default_factory=set)
    relationship_types: dict[str, str] = Field(default_factory=dict)
    related_documents: list[str] = Field(default_factory=list)
    required_actions: list[str] = Field(default_factory=list)
    completed_actions: list[str] = Field(default_factory=list)
    estimated_completion_date: date | None = None
    actual_completion_date: date | None = None
    tags: dict[str, str] = Field(default_factory=dict)
    metadata: dict[str, JsonValue] = Field(default_factory=dict)
    change_reason: str | None = None
    change_description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def reject_immutable_fields(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            for key in data:
                name = to_snake(str(key))
                if name in IMMUTABLE_FIELDS:
                    raise ValueError(f"{name} cannot be changed by an update")
        return data

    @field_validator("client_id", "current_stage")
    @classmethod
    def reject_explicit_null(cls, v: str | None) -> str:
        if v is None:
            raise ValueError("must not be null")
        return _require_text(v)

    def changes(self) -> dict[str, Any]:
        """Status fields present in the patch, with their new values."""
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name not in CHANGE_NOTE_FIELDS
        }


class SearchCriteria(BaseModel):
    """Exact-match filters combined with AND, plus optional text search."""

    model_config = _INPUT_CONFIG

    client_id: str | None = None
    advisor_id: str | None = None
    status_type: str | None = None
    priority: str | None = None
    category: str | None = None
    current_stage: str | None = None
    household_id: str | None = None
    text_search: str | None = None

    @property
    def normalized_text(self) -> str | None:
        if self.text_search is None:
            return None
        # Blank queries are ignored; otherwise the query is matched as given.
        if not self.text_search.strip():
            return None
        return self.text_search.casefold()

    def exact_filters(self) -> dict[str, str]:
        return {
            name: value
            for name in (
                "client_id",
                "advisor_id",
                "status_type",
                "priority",
                "category",
                "current_stage",
                "household_id",
            )
            if (value := getattr(self, name)) is not None
        }


def validate_input(model: type[ModelT], data: ModelT | Mapping[str, Any] | None) -> ModelT:
    """Validate raw input into ``model``, raising the engine's ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(to_snake(str(part)) for part in first["loc"]) or None
        if loc:
            message = f"Invalid {loc}: {first['msg']}"
        else:
            message = first["msg"]
        raise ValidationError(message, field=loc) from exc
