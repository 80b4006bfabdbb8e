"""Cache module: derived-view caching and invalidation."""

from allertrack.cache.coordinator import (
    DASHBOARD_DATA,
    INCIDENT,
    INCIDENT_STATS,
    INCIDENTS,
    MONTHLY_TRENDS,
    RECENT_INCIDENTS,
    SYMPTOM_FREQUENCY,
    TRIGGER_FREQUENCY,
    CacheCoordinator,
    QueryCache,
    family_of,
)

__all__ = [
    "QueryCache",
    "CacheCoordinator",
    "family_of",
    "RECENT_INCIDENTS",
    "INCIDENT_STATS",
    "DASHBOARD_DATA",
    "SYMPTOM_FREQUENCY",
    "INCIDENTS",
    "INCIDENT",
    "MONTHLY_TRENDS",
    "TRIGGER_FREQUENCY",
]
