"""
Pure aggregation over incident lists.

Every function takes a caller-supplied list of incidents and returns a
derived structure. No I/O, no hidden state. Aggregation is total: empty
or degenerate input yields zeroed/empty results, never an exception.

Design:
- Calendar month boundaries are computed in the supplied timezone (UTC by default)
- Percentages are relative to the total incident count, rounded half-up to 1 decimal
- Ties in rankings keep first-encountered order (deterministic for a given input order)
- Empty months are not synthesized in monthly trends
"""

import logging
from datetime import datetime, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

from allertrack.data.schema import Incident, Severity, empty_severity_breakdown, ensure_utc

from .schema import (
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

logger = logging.getLogger(__name__)

SEASON_BY_MONTH = {
    12: Season.WINTER, 1: Season.WINTER, 2: Season.WINTER,
    3: Season.SPRING, 4: Season.SPRING, 5: Season.SPRING,
    6: Season.SUMMER, 7: Season.SUMMER, 8: Season.SUMMER,
    9: Season.FALL, 10: Season.FALL, 11: Season.FALL,
}


def round_half_up(value: float, digits: int = 1) -> float:
    """
    Round with halves going away from zero.

    Example:
        round_half_up(0.25, 1) -> 0.3 (built-in round gives 0.2)
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(count: int, total: int) -> float:
    """count / total * 100 rounded to 1 decimal; 0.0 when total is 0."""
    if total <= 0:
        return 0.0
    return round_half_up(count / total * 100, 1)


def _now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else datetime.now(timezone.utc)


def month_key(value: datetime, tz: Optional[tzinfo] = None) -> str:
    """YYYY-MM of a timestamp in the given timezone."""
    return value.astimezone(tz or timezone.utc).strftime("%Y-%m")


def month_start(year: int, month: int, tz: Optional[tzinfo] = None) -> datetime:
    return datetime(year, month, 1, tzinfo=tz or timezone.utc)


def add_months(start: datetime, months: int) -> datetime:
    """Shift a first-of-month timestamp by whole calendar months."""
    index = start.year * 12 + (start.month - 1) + months
    return start.replace(year=index // 12, month=index % 12 + 1)


def current_month_start(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> datetime:
    local_now = _now(now).astimezone(tz or timezone.utc)
    return month_start(local_now.year, local_now.month, tz)


def trend_window_start(
    months_back: int,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """
    First instant of the trend window.

    The window covers the current calendar month plus months_back - 1
    preceding months.
    """
    return add_months(current_month_start(now, tz), -(max(months_back, 1) - 1))


def most_common_severity(incidents: Iterable[Incident]) -> Severity:
    """Severity with the highest count; ties go to the first encountered. Mild if empty."""
    counts: Dict[Severity, int] = {}
    for incident in incidents:
        counts[incident.severity] = counts.get(incident.severity, 0) + 1

    best: Optional[Severity] = None
    for level, count in counts.items():
        if best is None or count > counts[best]:
            best = level
    return best or Severity.MILD


def compute_stats(
    incidents: Iterable[Incident],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> IncidentStats:
    """
    Summary statistics.

    Args:
        incidents: Incidents to summarize, any order
        now: Reference time for month counts and the current streak
        tz: Timezone for calendar month boundaries

    Returns:
        IncidentStats (all zeros and Mild for empty input)

    Notes:
        - average_per_month divides by the number of distinct calendar
          months that contain at least one incident
        - longest_streak_days only considers gaps between incidents, not
          the gap from the latest incident to now
    """
    incidents = list(incidents)
    if not incidents:
        return IncidentStats()

    now = _now(now)
    this_start = current_month_start(now, tz)
    next_start = add_months(this_start, 1)
    last_start = add_months(this_start, -1)

    this_month = sum(1 for i in incidents if this_start <= i.occurred_at < next_start)
    last_month = sum(1 for i in incidents if last_start <= i.occurred_at < this_start)

    months = {month_key(i.occurred_at, tz) for i in incidents}
    average = round_half_up(len(incidents) / len(months), 1)

    ordered = sorted(i.occurred_at for i in incidents)
    longest = 0
    for earlier, later in zip(ordered, ordered[1:]):
        longest = max(longest, (later - earlier).days)
    current = max(0, (now - ordered[-1]).days)

    return IncidentStats(
        total_incidents=len(incidents),
        average_per_month=average,
        most_common_severity=most_common_severity(incidents),
        longest_streak_days=longest,
        current_streak_days=current,
        this_month_count=this_month,
        last_month_count=last_month,
    )


def compute_monthly_trends(
    incidents: Iterable[Incident],
    months_back: Optional[int] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[MonthlyTrend]:
    """
    Bucket incidents by calendar month.

    Args:
        incidents: Incidents to bucket
        months_back: If given, ignore incidents before the trend window
            (current month plus months_back - 1 preceding months)
        now: Reference time for the window
        tz: Timezone for month boundaries

    Returns:
        One MonthlyTrend per month containing at least one incident,
        oldest month first. Months without incidents are not emitted.
    """
    window_start = trend_window_start(months_back, now, tz) if months_back else None

    buckets: Dict[str, Dict] = {}
    for incident in incidents:
        if window_start is not None and incident.occurred_at < window_start:
            continue
        key = month_key(incident.occurred_at, tz)
        bucket = buckets.setdefault(
            key, {"count": 0, "breakdown": empty_severity_breakdown(), "durations": []}
        )
        bucket["count"] += 1
        bucket["breakdown"][incident.severity.value] += 1
        if incident.duration_minutes:
            bucket["durations"].append(incident.duration_minutes)

    trends = []
    for key in sorted(buckets):
        bucket = buckets[key]
        durations = bucket["durations"]
        avg = round_half_up(sum(durations) / len(durations), 0) if durations else 0.0
        trends.append(
            MonthlyTrend(
                month=key,
                incident_count=bucket["count"],
                severity_breakdown=bucket["breakdown"],
                avg_duration_minutes=avg,
            )
        )
    return trends


def compute_trigger_frequency(
    incidents: Iterable[Incident],
    limit: Optional[int] = 10,
) -> List[TriggerFrequency]:
    """
    Rank food and activity labels by occurrence.

    Foods and activities share one namespace keyed by label text. A label
    recorded both as a food and as an activity is a single counter whose
    category is whichever was counted last (foods are counted before
    activities within each incident).

    Args:
        incidents: Incidents to scan
        limit: Keep only the top N (None keeps all)

    Returns:
        TriggerFrequency list, most frequent first, ties in first-seen order
    """
    incidents = list(incidents)
    total = len(incidents)
    counts: Dict[str, int] = {}
    categories: Dict[str, TriggerCategory] = {}

    for incident in incidents:
        for food in incident.foods:
            counts[food] = counts.get(food, 0) + 1
            categories[food] = TriggerCategory.FOOD
        for activity in incident.activities:
            counts[activity] = counts.get(activity, 0) + 1
            categories[activity] = TriggerCategory.ACTIVITY

    ranked = sorted(counts, key=lambda label: counts[label], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]

    return [
        TriggerFrequency(
            trigger=label,
            count=counts[label],
            percentage=percentage(counts[label], total),
            category=categories[label],
        )
        for label in ranked
    ]


def compute_symptom_frequency(incidents: Iterable[Incident]) -> List[SymptomFrequency]:
    """
    Rank symptom labels by occurrence, with the severities they appeared under.

    Returns:
        Every symptom, most frequent first, ties in first-seen order
    """
    incidents = list(incidents)
    total = len(incidents)
    counts: Dict[str, int] = {}
    distributions: Dict[str, Dict[str, int]] = {}

    for incident in incidents:
        for symptom in incident.symptoms:
            counts[symptom] = counts.get(symptom, 0) + 1
            dist = distributions.setdefault(symptom, empty_severity_breakdown())
            dist[incident.severity.value] += 1

    ranked = sorted(counts, key=lambda label: counts[label], reverse=True)
    return [
        SymptomFrequency(
            symptom=label,
            count=counts[label],
            percentage=percentage(counts[label], total),
            severity_distribution=distributions[label],
        )
        for label in ranked
    ]


def compute_seasonal_patterns(
    incidents: Iterable[Incident],
    tz: Optional[tzinfo] = None,
) -> List[SeasonalPattern]:
    """
    Incident counts per calendar month of the year, across all years.

    Always returns 12 entries (January first) so seasons can be compared.
    avg_severity_score uses Mild=1, Moderate=2, Severe=3.
    """
    counts = {month: 0 for month in range(1, 13)}
    scores = {month: 0 for month in range(1, 13)}
    for incident in incidents:
        month = incident.occurred_at.astimezone(tz or timezone.utc).month
        counts[month] += 1
        scores[month] += incident.severity.rank

    return [
        SeasonalPattern(
            season=SEASON_BY_MONTH[month],
            month=month,
            incident_count=counts[month],
            avg_severity_score=round_half_up(scores[month] / counts[month], 1) if counts[month] else 0.0,
        )
        for month in range(1, 13)
    ]


def compute_time_patterns(
    incidents: Iterable[Incident],
    tz: Optional[tzinfo] = None,
) -> TimePatterns:
    """Counts by hour of day, weekday (Monday=0) and month, zero-filled."""
    hours = {hour: 0 for hour in range(24)}
    weekdays = {day: 0 for day in range(7)}
    months = {month: 0 for month in range(1, 13)}
    for incident in incidents:
        local = incident.occurred_at.astimezone(tz or timezone.utc)
        hours[local.hour] += 1
        weekdays[local.weekday()] += 1
        months[local.month] += 1
    return TimePatterns(hour_of_day=hours, day_of_week=weekdays, month_of_year=months)


def compute_trigger_correlations(
    incidents: Iterable[Incident],
    min_incidents: int = 2,
    threshold: float = 0.5,
) -> List[TriggerCorrelation]:
    """
    Foods that mostly co-occur with severe reactions.

    A food qualifies when it appears in at least min_incidents incidents
    and the share of those incidents rated Severe exceeds threshold.

    Returns:
        Qualifying foods, strongest correlation first
    """
    seen: Dict[str, int] = {}
    severe: Dict[str, int] = {}
    for incident in incidents:
        for food in set(incident.foods):
            seen[food] = seen.get(food, 0) + 1
            if incident.severity == Severity.SEVERE:
                severe[food] = severe.get(food, 0) + 1

    correlations = []
    for food, count in seen.items():
        if count < min_incidents:
            continue
        ratio = severe.get(food, 0) / count
        if ratio > threshold:
            correlations.append(
                TriggerCorrelation(
                    trigger=food,
                    category=TriggerCategory.FOOD,
                    correlation=round_half_up(ratio, 2),
                    incidents=count,
                )
            )
    correlations.sort(key=lambda c: c.correlation, reverse=True)
    return correlations


def compute_dashboard(
    incidents: Iterable[Incident],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    months_back: int = 12,
    top_triggers: int = 10,
) -> DashboardData:
    """
    Bundle every aggregate into one response.

    Each part is computed independently from the same input.
    """
    incidents = list(incidents)
    return DashboardData(
        stats=compute_stats(incidents, now=now, tz=tz),
        monthly_trends=compute_monthly_trends(incidents, months_back, now=now, tz=tz),
        top_triggers=compute_trigger_frequency(incidents, top_triggers),
        symptom_frequency=compute_symptom_frequency(incidents),
        seasonal_patterns=compute_seasonal_patterns(incidents, tz=tz),
        correlations=compute_trigger_correlations(incidents),
        time_patterns=compute_time_patterns(incidents, tz=tz),
    )
