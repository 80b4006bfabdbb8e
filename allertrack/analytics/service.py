"""
Analytics facade used by the dashboard.

Prefers the backend procedures when the store offers them and falls back
to manual computation on any AllerTrackError. Results are cached through
the coordinator and dropped on the next mutation.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional
from zoneinfo import ZoneInfo

from allertrack.cache.coordinator import (
    DASHBOARD_DATA,
    INCIDENT_STATS,
    MONTHLY_TRENDS,
    SYMPTOM_FREQUENCY,
    TRIGGER_FREQUENCY,
    CacheCoordinator,
)
from allertrack.core.config import AnalyticsConfig
from allertrack.core.context import SessionContext
from allertrack.core.exceptions import AllerTrackError, DataValidationError
from allertrack.store.base import IncidentStore

from .aggregation import (
    compute_seasonal_patterns,
    compute_time_patterns,
    compute_trigger_correlations,
)
from .schema import (
    DashboardData,
    IncidentStats,
    MonthlyTrend,
    SymptomFrequency,
    TriggerFrequency,
)
from .strategies import AnalyticsStrategy, ManualAnalytics, ProcedureAnalytics

logger = logging.getLogger(__name__)


class AnalyticsService:
    """
    Owner-scoped analytics with procedure-first, manual-fallback computation.

    Usage:
        analytics = AnalyticsService(store, context, coordinator)
        dashboard = await analytics.dashboard()
    """

    def __init__(
        self,
        store: Optional[IncidentStore],
        context: SessionContext,
        coordinator: CacheCoordinator,
        settings: Optional[AnalyticsConfig] = None,
    ):
        self.store = store
        self.context = context
        self.coordinator = coordinator
        self.settings = settings or AnalyticsConfig()
        self.tz = ZoneInfo(self.settings.timezone)

        self.manual = ManualAnalytics(store, tz=self.tz)
        self.procedures: Optional[AnalyticsStrategy] = None
        if store is not None and store.supports_procedures and self.settings.prefer_procedures:
            self.procedures = ProcedureAnalytics(store)

    def _owner(self) -> str:
        owner_id = self.context.require_owner()
        self.coordinator.ensure_current(self.context.owner_key)
        return owner_id

    async def _compute(self, method: str, *args: Any) -> Any:
        owner_id = self._owner()
        if self.procedures is not None:
            try:
                return await getattr(self.procedures, method)(owner_id, *args)
            except AllerTrackError as exc:
                logger.warning(f"Procedure path for {method} failed, computing manually: {exc}")
        return await getattr(self.manual, method)(owner_id, *args)

    async def _cached(self, key: Any, loader: Callable[[], Awaitable[Any]]) -> Any:
        self._owner()
        return await self.coordinator.cache.get_or_load(key, loader)

    async def stats(self) -> IncidentStats:
        return await self._cached(INCIDENT_STATS, lambda: self._compute("stats"))

    async def monthly_trends(self, months_back: Optional[int] = None) -> List[MonthlyTrend]:
        months = self.settings.trend_months if months_back is None else months_back
        if months < 1:
            raise DataValidationError("months_back must be at least 1", field="months_back")
        return await self._cached(
            (MONTHLY_TRENDS, months), lambda: self._compute("monthly_trends", months)
        )

    async def trigger_frequency(self, limit: Optional[int] = None) -> List[TriggerFrequency]:
        count = self.settings.top_triggers if limit is None else limit
        if count < 1:
            raise DataValidationError("limit must be at least 1", field="limit")
        return await self._cached(
            (TRIGGER_FREQUENCY, count), lambda: self._compute("trigger_frequency", count)
        )

    async def symptom_frequency(self) -> List[SymptomFrequency]:
        return await self._cached(SYMPTOM_FREQUENCY, lambda: self._compute("symptom_frequency"))

    async def dashboard(self) -> DashboardData:
        """
        Everything the dashboard needs in one call.

        The four core aggregates are requested concurrently; seasonal,
        correlation and time-of-day views are derived from the raw rows.
        """
        return await self._cached(DASHBOARD_DATA, self._load_dashboard)

    async def _load_dashboard(self) -> DashboardData:
        owner_id = self._owner()
        stats, trends, triggers, symptoms, rows = await asyncio.gather(
            self.stats(),
            self.monthly_trends(),
            self.trigger_frequency(),
            self.symptom_frequency(),
            self.manual.incidents(owner_id),
        )
        return DashboardData(
            stats=stats,
            monthly_trends=trends,
            top_triggers=triggers,
            symptom_frequency=symptoms,
            seasonal_patterns=compute_seasonal_patterns(rows, tz=self.tz),
            correlations=compute_trigger_correlations(rows),
            time_patterns=compute_time_patterns(rows, tz=self.tz),
        )
