"""
Boundary validation for incident input.

Converts raw mappings (or already-built models, which may have been created
without validation) into checked models, applying the configurable bounds
from ValidationLimits. Every failure becomes a DataValidationError that
names the first offending field.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from allertrack.core.config import ValidationLimits, config
from allertrack.core.exceptions import DataValidationError
from allertrack.data.schema import IncidentCreate, IncidentUpdate, SearchParams

logger = logging.getLogger(__name__)

InputData = Union[BaseModel, Mapping[str, Any]]


def _as_mapping(data: Optional[InputData]) -> Mapping[str, Any]:
    if data is None:
        return {}
    if isinstance(data, BaseModel):
        # Re-validate model instances; they may come from model_construct()
        return data.model_dump(exclude_unset=True)
    return data


def _from_pydantic(exc: ValidationError) -> DataValidationError:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or None
    message = first.get("msg", "Invalid value")
    if field:
        message = f"{field}: {message}"
    return DataValidationError(message, field=field)


def check_occurred_at(
    value: datetime,
    limits: ValidationLimits,
    now: Optional[datetime] = None,
) -> None:
    """
    Enforce the allowed incident time window.

    Raises:
        DataValidationError: If value is more than max_past_days old or more
            than max_future_minutes ahead of now
    """
    now = now or datetime.now(timezone.utc)
    earliest = now - timedelta(days=limits.max_past_days)
    latest = now + timedelta(minutes=limits.max_future_minutes)
    if value < earliest or value > latest:
        raise DataValidationError(
            "Incident date must be within the last year and not more than "
            "1 hour in the future",
            field="occurred_at",
        )


def _check_labels(name: str, labels: Optional[List[str]], maximum: int) -> None:
    if labels is None:
        return
    if len(labels) > maximum:
        raise DataValidationError(f"Too many {name} listed (max {maximum})", field=name)
    for label in labels:
        if not label or not label.strip():
            raise DataValidationError(f"{name} entries cannot be empty", field=name)


def _check_bounds(model: Union[IncidentCreate, IncidentUpdate], limits: ValidationLimits) -> None:
    _check_labels("symptoms", model.symptoms, limits.max_symptoms)
    _check_labels("foods", model.foods, limits.max_foods)
    _check_labels("activities", model.activities, limits.max_activities)
    _check_labels("medications", model.medications, limits.max_medications)

    if model.duration_minutes is not None and model.duration_minutes > limits.max_duration_minutes:
        raise DataValidationError("Duration cannot exceed 7 days", field="duration_minutes")

    if model.notes is not None and len(model.notes) > limits.max_notes_length:
        raise DataValidationError(
            f"Notes cannot exceed {limits.max_notes_length} characters",
            field="notes",
        )


def validate_create(
    data: InputData,
    limits: Optional[ValidationLimits] = None,
    now: Optional[datetime] = None,
) -> IncidentCreate:
    """
    Validate new-incident input.

    Args:
        data: Mapping or IncidentCreate
        limits: Bounds to apply (defaults to global config)
        now: Reference time for the occurred_at window

    Returns:
        Validated IncidentCreate

    Raises:
        DataValidationError: On the first invalid field
    """
    limits = limits or config.validation
    try:
        model = IncidentCreate.model_validate(_as_mapping(data))
    except ValidationError as exc:
        raise _from_pydantic(exc) from exc

    _check_bounds(model, limits)
    check_occurred_at(model.occurred_at, limits, now)
    return model


def validate_update(
    data: Optional[InputData],
    limits: Optional[ValidationLimits] = None,
    now: Optional[datetime] = None,
) -> IncidentUpdate:
    """
    Validate a partial patch. An empty patch is valid.

    Raises:
        DataValidationError: On the first invalid field
    """
    limits = limits or config.validation
    try:
        model = IncidentUpdate.model_validate(_as_mapping(data))
    except ValidationError as exc:
        raise _from_pydantic(exc) from exc

    _check_bounds(model, limits)
    if model.occurred_at is not None:
        check_occurred_at(model.occurred_at, limits, now)
    return model


def validate_search_params(
    params: Optional[InputData],
    limits: Optional[ValidationLimits] = None,
) -> SearchParams:
    """
    Validate listing parameters, filling defaults.

    Raises:
        DataValidationError: If page/limit/sort/filters are out of bounds
    """
    limits = limits or config.validation
    mapping = dict(_as_mapping(params))
    mapping.setdefault("limit", limits.default_page_size)
    try:
        model = SearchParams.model_validate(mapping)
    except ValidationError as exc:
        raise _from_pydantic(exc) from exc

    if model.limit > limits.max_page_size:
        raise DataValidationError(
            f"limit cannot exceed {limits.max_page_size}", field="limit"
        )
    search = model.filters.search
    if search is not None and len(search) > limits.max_search_length:
        raise DataValidationError("Search text too long", field="filters.search")
    return model

