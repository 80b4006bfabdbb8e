"""
Analytics module: derived aggregates over incidents.

Pure aggregation lives in aggregation.py; strategies.py offers the manual
and backend-procedure ways of computing the same results, and service.py
ties them to the session and the cache.
"""

from allertrack.analytics.aggregation import (
    compute_dashboard,
    compute_monthly_trends,
    compute_seasonal_patterns,
    compute_stats,
    compute_symptom_frequency,
    compute_time_patterns,
    compute_trigger_correlations,
    compute_trigger_frequency,
    round_half_up,
)
from allertrack.analytics.schema import (
    DashboardData,
    IncidentStats,
    MonthlyTrend,
    Season,
    SeasonalPattern,
    SymptomFrequency,
    TimePatterns,
    TriggerCategory,
    TriggerCorrelation,
    TriggerFrequency,
)
from allertrack.analytics.service import AnalyticsService
from allertrack.analytics.strategies import ManualAnalytics, ProcedureAnalytics

__all__ = [
    # Schema
    "IncidentStats",
    "MonthlyTrend",
    "TriggerCategory",
    "TriggerFrequency",
    "SymptomFrequency",
    "Season",
    "SeasonalPattern",
    "TriggerCorrelation",
    "TimePatterns",
    "DashboardData",

    # Aggregation
    "round_half_up",
    "compute_stats",
    "compute_monthly_trends",
    "compute_trigger_frequency",
    "compute_symptom_frequency",
    "compute_seasonal_patterns",
    "compute_time_patterns",
    "compute_trigger_correlations",
    "compute_dashboard",

    # Strategies
    "ManualAnalytics",
    "ProcedureAnalytics",
    "AnalyticsService",
]
