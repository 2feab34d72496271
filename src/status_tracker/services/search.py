"""Filter and substring search over the stored statuses."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from status_tracker.domain.status import Status
from status_tracker.exceptions import ValidationError
from status_tracker.logging_config import get_logger
from status_tracker.schemas import SearchCriteria, validate_input
from status_tracker.services.status_store import StatusStore

logger = get_logger(__name__)


def matches_filters(status: Status, filters: Mapping[str, str]) -> bool:
    return all(getattr(status, name) == value for name, value in filters.items())


def searchable_text(status: Status) -> Iterable[str]:
    """Every string a text query is matched against."""
    for value in (status.status_summary, status.category, status.sub_category):
        if value:
            yield value
    yield from status.tags.values()
    yield from status.required_actions
    yield from status.completed_actions


def matches_text(status: Status, query: str) -> bool:
    """``query`` must already be casefolded."""
    return any(query in text.casefold() for text in searchable_text(status))


class SearchEngine:
    """Full scan with in-process filtering.

    Results are ordered by ``last_updated_date`` descending when a text query
    is present, otherwise by ``created_date`` ascending. Ties break on
    ``status_id``.
    """

    def __init__(self, store: StatusStore) -> None:
        self._store = store

    def search(
        self, criteria: SearchCriteria | Mapping[str, Any] | None = None
    ) -> list[Status]:
        criteria = validate_input(SearchCriteria, criteria or {})
        filters = criteria.exact_filters()
        query = criteria.normalized_text

        results = [
            status
            for status in self._store.all_statuses()
            if matches_filters(status, filters)
            and (query is None or matches_text(status, query))
        ]

        if query is not None:
            results.sort(key=lambda s: s.status_id)
            results.sort(key=lambda s: s.last_updated_date, reverse=True)
        else:
            results.sort(key=lambda s: (s.created_date, s.status_id))

        logger.debug(
            "search_completed",
            filters=sorted(filters),
            text_search=query is not None,
            result_count=len(results),
        )
        return results

    def advisor_client_statuses(
        self, advisor_id: str, status_type: str | None = None
    ) -> dict[str, list[Status]]:
        """An advisor's statuses grouped by client, each group oldest first."""
        if not advisor_id:
            raise ValidationError("advisor_id is required", field="advisor_id")
        grouped: dict[str, list[Status]] = {}
        criteria = SearchCriteria(advisor_id=advisor_id, status_type=status_type)
        for status in self.search(criteria):
            grouped.setdefault(status.client_id, []).append(status)
        return grouped
