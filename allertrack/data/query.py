"""
In-memory query engine over incident lists.

Applies the same filter, sort and pagination semantics the hosted backend
applies server-side, so the local demo store answers listing requests
exactly like the remote store does.
"""

import logging
from typing import Iterable, List

from allertrack.data.schema import (
    Incident,
    IncidentFilters,
    PaginatedIncidents,
    Pagination,
    SearchParams,
)

logger = logging.getLogger(__name__)


def matches_search(incident: Incident, term: str) -> bool:
    """
    Free-text match.

    Notes match on a case-insensitive substring; symptoms, foods and
    activities match only on an exact label.
    """
    if incident.notes and term.lower() in incident.notes.lower():
        return True
    return (
        term in incident.symptoms
        or term in incident.foods
        or term in incident.activities
    )


def matches_filters(incident: Incident, filters: IncidentFilters) -> bool:
    """Check one incident against every active filter."""
    if filters.date_from and incident.occurred_at < filters.date_from:
        return False
    if filters.date_to and incident.occurred_at > filters.date_to:
        return False
    if filters.severity and incident.severity not in filters.severity:
        return False
    if filters.symptoms and not set(filters.symptoms) & set(incident.symptoms):
        return False
    if filters.foods and not set(filters.foods) & set(incident.foods):
        return False
    if filters.search and not matches_search(incident, filters.search):
        return False
    return True


def filter_incidents(
    incidents: Iterable[Incident],
    filters: IncidentFilters,
) -> List[Incident]:
    return [i for i in incidents if matches_filters(i, filters)]


def sort_incidents(
    incidents: List[Incident],
    sort_by: str = "occurred_at",
    sort_order: str = "desc",
) -> List[Incident]:
    """
    Sort a copy of the list. Ties keep their stored order.

    Severity sorts by rank (Mild < Moderate < Severe), not alphabetically.
    """
    if sort_by == "severity":
        key = lambda i: i.severity.rank  # noqa: E731
    elif sort_by == "created_at":
        key = lambda i: i.created_at  # noqa: E731
    else:
        key = lambda i: i.occurred_at  # noqa: E731
    return sorted(incidents, key=key, reverse=(sort_order == "desc"))


def paginate(incidents: List[Incident], page: int, limit: int) -> PaginatedIncidents:
    """Slice one page and compute its pagination metadata."""
    start = (page - 1) * limit
    return PaginatedIncidents(
        items=incidents[start:start + limit],
        pagination=Pagination.build(page, limit, len(incidents)),
    )


def run_query(incidents: Iterable[Incident], params: SearchParams) -> PaginatedIncidents:
    """
    Filter, sort and paginate.

    Args:
        incidents: Every incident visible to the owner
        params: Validated search parameters

    Returns:
        One page plus pagination metadata
    """
    selected = filter_incidents(incidents, params.filters)
    ordered = sort_incidents(selected, params.sort_by, params.sort_order)
    return paginate(ordered, params.page, params.limit)
