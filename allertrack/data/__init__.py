"""
Data module: Incident schema, boundary validation, in-memory querying and demo seed data.

Pipeline for a write:

    Raw input (mapping or model)
        ↓
    Validation (allertrack/data/validation.py) → IncidentCreate / IncidentUpdate
        ↓
    Store (allertrack/store) → Incident

Pipeline for a local read:

    Stored incidents
        ↓
    Query (allertrack/data/query.py) → PaginatedIncidents
"""

from allertrack.data.query import (
    filter_incidents,
    matches_filters,
    paginate,
    run_query,
    sort_incidents,
)
from allertrack.data.schema import (
    EnvironmentalFactors,
    Incident,
    IncidentCreate,
    IncidentFilters,
    IncidentUpdate,
    PaginatedIncidents,
    Pagination,
    SearchParams,
    Severity,
    ensure_utc,
)
from allertrack.data.seed import initial_demo_incidents
from allertrack.data.validation import (
    check_occurred_at,
    validate_create,
    validate_search_params,
    validate_update,
)

__all__ = [
    # Schema
    "Severity",
    "EnvironmentalFactors",
    "Incident",
    "IncidentCreate",
    "IncidentUpdate",
    "IncidentFilters",
    "SearchParams",
    "Pagination",
    "PaginatedIncidents",
    "ensure_utc",
    
    # Validation
    "validate_create",
    "validate_update",
    "validate_search_params",
    "check_occurred_at",
    
    # Query
    "filter_incidents",
    "matches_filters",
    "sort_incidents",
    "paginate",
    "run_query",
    
    # Seed
    "initial_demo_incidents",
]
