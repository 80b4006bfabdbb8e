"""
Interchangeable ways of computing the same aggregates.

ManualAnalytics fetches raw rows from any store and runs the pure
aggregation functions. ProcedureAnalytics asks the hosted backend's named
aggregate procedures. Both return identical models for the same rows.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from allertrack.core.exceptions import StorageUnavailableError
from allertrack.data.schema import Incident
from allertrack.store.base import IncidentStore

from .aggregation import (
    compute_monthly_trends,
    compute_stats,
    compute_symptom_frequency,
    compute_trigger_frequency,
    round_half_up,
    trend_window_start,
)
from .schema import IncidentStats, MonthlyTrend, SymptomFrequency, TriggerFrequency

logger = logging.getLogger(__name__)

STATS_PROCEDURE = "get_user_incident_stats"
TRENDS_PROCEDURE = "get_monthly_trends"
TRIGGERS_PROCEDURE = "get_trigger_frequency"
SYMPTOMS_PROCEDURE = "get_symptom_frequency"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AnalyticsStrategy(ABC):
    """One function signature per aggregate, scoped by owner."""

    name: str = "base"

    @abstractmethod
    async def stats(self, owner_id: str) -> IncidentStats:
        ...

    @abstractmethod
    async def monthly_trends(self, owner_id: str, months_back: int) -> List[MonthlyTrend]:
        ...

    @abstractmethod
    async def trigger_frequency(self, owner_id: str, limit: int) -> List[TriggerFrequency]:
        ...

    @abstractmethod
    async def symptom_frequency(self, owner_id: str) -> List[SymptomFrequency]:
        ...


class ManualAnalytics(AnalyticsStrategy):
    """Aggregates computed locally from raw incident rows."""

    name = "manual"

    def __init__(
        self,
        store: IncidentStore,
        tz: Optional[tzinfo] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.tz = tz or timezone.utc
        self.clock = clock

    async def incidents(self, owner_id: str, since: Optional[datetime] = None) -> List[Incident]:
        return await self.store.fetch_all(owner_id, since=since)

    async def stats(self, owner_id: str) -> IncidentStats:
        rows = await self.incidents(owner_id)
        return compute_stats(rows, now=self.clock(), tz=self.tz)

    async def monthly_trends(self, owner_id: str, months_back: int) -> List[MonthlyTrend]:
        now = self.clock()
        since = trend_window_start(months_back, now, self.tz)
        rows = await self.incidents(owner_id, since=since)
        return compute_monthly_trends(rows, months_back, now=now, tz=self.tz)

    async def trigger_frequency(self, owner_id: str, limit: int) -> List[TriggerFrequency]:
        rows = await self.incidents(owner_id)
        return compute_trigger_frequency(rows, limit)

    async def symptom_frequency(self, owner_id: str) -> List[SymptomFrequency]:
        rows = await self.incidents(owner_id)
        return compute_symptom_frequency(rows)


def _first_row(result: Any) -> Optional[Dict[str, Any]]:
    if isinstance(result, list):
        return result[0] if result else None
    return result


def _rows(result: Any) -> List[Dict[str, Any]]:
    if result is None:
        return []
    if not isinstance(result, list):
        raise StorageUnavailableError(f"Expected a row list from procedure, got {type(result).__name__}")
    return result


class ProcedureAnalytics(AnalyticsStrategy):
    """
    Aggregates computed by the backend's named procedures.

    Notes:
    - Month values may come back as dates ("2024-01-01"); they are cut to YYYY-MM.
    - Percentages are re-rounded half-up to 1 decimal so both paths agree.
    - Malformed results raise StorageUnavailableError so callers can fall back.
    """

    name = "procedure"

    def __init__(self, store: IncidentStore):
        self.store = store

    async def _call(self, procedure: str, params: Dict[str, Any]) -> Any:
        logger.debug("Calling procedure %s", procedure)
        return await self.store.call_procedure(procedure, params)

    @staticmethod
    def _parse(procedure: str, build: Callable[[], Any]) -> Any:
        try:
            return build()
        except (ValidationError, KeyError, TypeError, ValueError) as exc:
            raise StorageUnavailableError(f"Malformed result from {procedure}: {exc}") from exc

    async def stats(self, owner_id: str) -> IncidentStats:
        result = await self._call(STATS_PROCEDURE, {"user_uuid": owner_id})
        row = _first_row(result)
        if not row:
            return IncidentStats()
        return self._parse(STATS_PROCEDURE, lambda: IncidentStats.model_validate(row))

    async def monthly_trends(self, owner_id: str, months_back: int) -> List[MonthlyTrend]:
        result = await self._call(
            TRENDS_PROCEDURE, {"user_uuid": owner_id, "months_back": months_back}
        )

        def build() -> List[MonthlyTrend]:
            trends = [
                MonthlyTrend.model_validate({**row, "month": str(row["month"])[:7]})
                for row in _rows(result)
            ]
            return sorted(trends, key=lambda t: t.month)

        return self._parse(TRENDS_PROCEDURE, build)

    async def trigger_frequency(self, owner_id: str, limit: int) -> List[TriggerFrequency]:
        result = await self._call(
            TRIGGERS_PROCEDURE, {"user_uuid": owner_id, "limit_count": limit}
        )

        def build() -> List[TriggerFrequency]:
            return [
                TriggerFrequency.model_validate(
                    {**row, "percentage": round_half_up(float(row["percentage"]), 1)}
                )
                for row in _rows(result)
            ][:limit]

        return self._parse(TRIGGERS_PROCEDURE, build)

    async def symptom_frequency(self, owner_id: str) -> List[SymptomFrequency]:
        result = await self._call(SYMPTOMS_PROCEDURE, {"user_uuid": owner_id})

        def build() -> List[SymptomFrequency]:
            return [
                SymptomFrequency.model_validate(
                    {**row, "percentage": round_half_up(float(row["percentage"]), 1)}
                )
                for row in _rows(result)
            ]

        return self._parse(SYMPTOMS_PROCEDURE, build)
