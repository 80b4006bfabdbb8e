"""
AllerTrack: allergy-incident tracking core.

Incident storage (hosted backend or local demo collection), an access
layer over both, analytics aggregation and cache invalidation.
"""

from allertrack.analytics.service import AnalyticsService
from allertrack.cache.coordinator import CacheCoordinator, QueryCache
from allertrack.core.context import SessionContext
from allertrack.service import IncidentService
from allertrack.session import Session

__version__ = "0.1.0"

__all__ = [
    "Session",
    "SessionContext",
    "IncidentService",
    "AnalyticsService",
    "CacheCoordinator",
    "QueryCache",
]
