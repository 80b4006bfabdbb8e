"""
Canonical incident schema for AllerTrack.

This module defines the standardized representation of an allergy incident
and of the query shapes used to list incidents. Both storage backends (the
hosted table and the local demo collection) read and write this schema.

Design rationale:
- Python field names describe the domain (owner, occurred_at)
- Storage/wire names of the hosted table (user_id, incident_date) are aliases,
  and either name is accepted on input
- All timestamps are timezone-aware UTC; naive values are taken as UTC
- Stored records are validated for shape only; input bounds are enforced
  at the boundary (see validation.py)
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def ensure_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime. Naive values are assumed UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Severity(str, Enum):
    """
    Ordered three-level incident severity.

    Mild < Moderate < Severe; use `rank` for ordering, never the string value.
    """
    MILD = "Mild"
    MODERATE = "Moderate"
    SEVERE = "Severe"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.MILD: 1, Severity.MODERATE: 2, Severity.SEVERE: 3}


def empty_severity_breakdown() -> Dict[str, int]:
    """Zeroed per-severity counter keyed by severity value."""
    return {level.value: 0 for level in Severity}


class EnvironmentalFactors(BaseModel):
    """
    Optional named conditions around an incident.

    Attributes:
        weather: Free-text weather description
        location: Where the incident happened
        stress_level: Self-reported stress on a 1-10 scale
        air_quality: Free-text air quality note
        temperature: Ambient temperature (unit chosen by the user)
        humidity: Relative humidity 0-100
        pollen_count: Free-text pollen level ("High", "Very High")
        other: Anything else
    """

    model_config = ConfigDict(extra="ignore")

    weather: Optional[str] = None
    location: Optional[str] = None
    stress_level: Optional[int] = Field(default=None, ge=1, le=10)
    air_quality: Optional[str] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = Field(default=None, ge=0, le=100)
    pollen_count: Optional[str] = None
    other: Optional[str] = None


class Incident(BaseModel):
    """
    One recorded allergy incident, as stored.

    Attributes:
        id: Opaque identifier assigned at creation, immutable
        owner: Identifier of the owning user (stored as user_id)
        occurred_at: When the incident happened (stored as incident_date)
        severity: Mild, Moderate or Severe
        symptoms: Ordered symptom labels
        foods: Ordered food labels (triggers)
        activities: Ordered activity labels (triggers)
        medications: Ordered medication labels
        environmental_factors: Structured bag of conditions
        duration_minutes: How long the reaction lasted
        notes: Free text
        created_at: Record creation time (system-assigned)
        updated_at: Last modification time (system-assigned)
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    owner: str = Field(..., alias="user_id")
    occurred_at: datetime = Field(..., alias="incident_date")
    severity: Severity
    symptoms: List[str] = Field(default_factory=list)
    foods: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    environmental_factors: EnvironmentalFactors = Field(default_factory=EnvironmentalFactors)
    duration_minutes: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("foods", "activities", "medications", "symptoms", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        # The hosted table returns NULL for never-set array columns
        return [] if value is None else value

    @field_validator("environmental_factors", mode="before")
    @classmethod
    def _null_factors(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("occurred_at", "created_at", "updated_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_record(self) -> Dict[str, Any]:
        """Serialize with storage column names, JSON-safe."""
        return self.model_dump(mode="json", by_alias=True)


class IncidentCreate(BaseModel):
    """
    Caller-supplied fields for a new incident.

    Shape constraints live here; configurable bounds (list sizes, notes
    length, the occurred_at window) are applied by validation.validate_create.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    occurred_at: datetime = Field(..., alias="incident_date")
    severity: Severity
    symptoms: List[str] = Field(..., min_length=1)
    foods: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    environmental_factors: EnvironmentalFactors = Field(default_factory=EnvironmentalFactors)
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None

    @field_validator("occurred_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class IncidentUpdate(BaseModel):
    """
    Partial patch for an existing incident.

    Only explicitly provided fields are applied; everything else is preserved.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    occurred_at: Optional[datetime] = Field(default=None, alias="incident_date")
    severity: Optional[Severity] = None
    symptoms: Optional[List[str]] = Field(default=None, min_length=1)
    foods: Optional[List[str]] = None
    activities: Optional[List[str]] = None
    medications: Optional[List[str]] = None
    environmental_factors: Optional[EnvironmentalFactors] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None

    @field_validator("occurred_at")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _required_not_cleared(self) -> "IncidentUpdate":
        for name in ("occurred_at", "severity", "symptoms"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> Dict[str, Any]:
        """Explicitly set fields only, keyed by Python field name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class IncidentFilters(BaseModel):
    """
    Filters for listing incidents.

    Notes:
        - date_from/date_to are both inclusive
        - severity, symptoms and foods match on any overlap
        - search matches notes (case-insensitive substring) or an exact
          label in symptoms, foods or activities
    """

    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    severity: List[Severity] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    foods: List[str] = Field(default_factory=list)
    search: Optional[str] = Field(default=None, max_length=100)

    @field_validator("date_from", "date_to")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("search")
    @classmethod
    def _blank_search(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @model_validator(mode="after")
    def _ordered_range(self) -> "IncidentFilters":
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("Start date must be before end date")
        return self


SortField = Literal["occurred_at", "severity", "created_at"]
SortOrder = Literal["asc", "desc"]


class SearchParams(BaseModel):
    """Page, filter and sort request for incident listings."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    filters: IncidentFilters = Field(default_factory=IncidentFilters)
    sort_by: SortField = "occurred_at"
    sort_order: SortOrder = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def cache_key(self) -> str:
        """Stable string identifying this query shape."""
        return self.model_dump_json()


class Pagination(BaseModel):
    """Page metadata returned with every listing."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class PaginatedIncidents(BaseModel):
    """A page of incidents plus pagination metadata."""

    items: List[Incident] = Field(default_factory=list)
    pagination: Pagination
