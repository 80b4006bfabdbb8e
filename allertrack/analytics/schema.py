"""
Schema definitions for incident analytics.

All aggregates are derived, never persisted, and recomputed on demand.
Severity-keyed maps use the severity value ("Mild", "Moderate", "Severe")
as key so they serialize identically from both compute paths.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, Field

from allertrack.data.schema import Severity, empty_severity_breakdown


class TriggerCategory(str, Enum):
    """Where a trigger label was recorded."""

    FOOD = "food"
    ACTIVITY = "activity"
    ENVIRONMENTAL = "environmental"
    MEDICATION = "medication"


class Season(str, Enum):
    """Northern-hemisphere meteorological seasons."""

    SPRING = "Spring"
    SUMMER = "Summer"
    FALL = "Fall"
    WINTER = "Winter"


class IncidentStats(BaseModel):
    """
    Summary statistics over a set of incidents.

    Fields:
    - total_incidents: number of incidents
    - average_per_month: total / distinct calendar months with data, 1 decimal
    - most_common_severity: highest count, ties go to the first encountered;
      Mild when there are no incidents
    - longest_streak_days: largest whole-day gap between adjacent incidents
    - current_streak_days: whole days since the most recent incident
    - this_month_count/last_month_count: calendar month counts
    """

    total_incidents: int = Field(0, ge=0)
    average_per_month: float = Field(0.0, ge=0.0)
    most_common_severity: Severity = Severity.MILD
    longest_streak_days: int = Field(0, ge=0)
    current_streak_days: int = Field(0, ge=0)
    this_month_count: int = Field(0, ge=0)
    last_month_count: int = Field(0, ge=0)


class MonthlyTrend(BaseModel):
    """
    One calendar month bucket.

    Fields:
    - month: YYYY-MM
    - incident_count: incidents in the bucket
    - severity_breakdown: count per severity; values sum to incident_count
    - avg_duration_minutes: mean of recorded durations (whole minutes), 0 if none
    """

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")
    incident_count: int = Field(..., ge=0)
    severity_breakdown: Dict[str, int] = Field(default_factory=empty_severity_breakdown)
    avg_duration_minutes: float = Field(0.0, ge=0.0)


class TriggerFrequency(BaseModel):
    """Occurrences of one food or activity label."""

    trigger: str
    count: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0.0)
    category: TriggerCategory


class SymptomFrequency(BaseModel):
    """Occurrences of one symptom label and the severities it appeared with."""

    symptom: str
    count: int = Field(..., ge=0)
    percentage: float = Field(..., ge=0.0)
    severity_distribution: Dict[str, int] = Field(default_factory=empty_severity_breakdown)


class SeasonalPattern(BaseModel):
    """Incidents falling in one calendar month of the year, across years."""

    season: Season
    month: int = Field(..., ge=1, le=12)
    incident_count: int = Field(..., ge=0)
    avg_severity_score: float = Field(0.0, ge=0.0, le=3.0)


class TriggerCorrelation(BaseModel):
    """A trigger that mostly co-occurs with severe reactions."""

    trigger: str
    category: TriggerCategory
    correlation: float = Field(..., ge=0.0, le=1.0)
    incidents: int = Field(..., ge=0)


class TimePatterns(BaseModel):
    """
    Incident counts by time slot.

    Keys: hour 0-23, weekday 0-6 (Monday=0), month 1-12.
    """

    hour_of_day: Dict[int, int] = Field(default_factory=dict)
    day_of_week: Dict[int, int] = Field(default_factory=dict)
    month_of_year: Dict[int, int] = Field(default_factory=dict)


class DashboardData(BaseModel):
    """Everything the dashboard renders, in one response."""

    stats: IncidentStats
    monthly_trends: List[MonthlyTrend] = Field(default_factory=list)
    top_triggers: List[TriggerFrequency] = Field(default_factory=list)
    symptom_frequency: List[SymptomFrequency] = Field(default_factory=list)
    seasonal_patterns: List[SeasonalPattern] = Field(default_factory=list)
    correlations: List[TriggerCorrelation] = Field(default_factory=list)
    time_patterns: TimePatterns = Field(default_factory=TimePatterns)
