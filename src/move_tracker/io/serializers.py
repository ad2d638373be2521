"""
JSON serialization for routines and statistics records.

Handles conversion between dataclasses and JSON-compatible dicts.  The
on-disk statistics layout keeps the short document field names
(``effort``, ``calories``, ``km``) used by the hosted store the data
usually comes from.
"""

import math
from typing import Any

from ..core.config import ACTIVITY_TYPES, MONTHS_PER_YEAR
from ..core.errors import ValidationError
from ..core.models import ActivityType, Exercise, MonthlyStatRecord, Routine


def validate_activity_type(activity_type: str) -> ActivityType:
    """
    Validate an activity / routine type.

    Args:
        activity_type: Type string to validate

    Returns:
        Validated activity type

    Raises:
        ValidationError: If the type is not one of ACTIVITY_TYPES
    """
    if activity_type not in ACTIVITY_TYPES:
        raise ValidationError(
            f"Invalid routine type: {activity_type!r}. Must be one of {ACTIVITY_TYPES}"
        )
    return activity_type  # type: ignore


def validate_non_negative(value: int | float, name: str) -> int | float:
    """
    Validate that a value is finite and non-negative.

    Raises:
        ValidationError: If value is negative, NaN or infinite
    """
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"{name} must be a non-negative number, got {value}")
    return value


def validate_positive(value: int | float, name: str) -> int | float:
    """
    Validate that a value is positive.

    Raises:
        ValidationError: If value is not positive
    """
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")
    return value


def validate_month(month: int) -> int:
    """Validate a calendar month number (1-12)."""
    if not 1 <= month <= MONTHS_PER_YEAR:
        raise ValidationError(f"Month must be in 1..{MONTHS_PER_YEAR}, got {month}")
    return month


def _first(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the value of the first key present in data."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def exercise_to_dict(exercise: Exercise) -> dict[str, Any]:
    """Convert Exercise to JSON-compatible dict, omitting empty optionals."""
    d: dict[str, Any] = {"name": exercise.name}
    if exercise.repetitions_label:
        d["repetitions_label"] = exercise.repetitions_label
    if exercise.image_ref:
        d["image_ref"] = exercise.image_ref
    return d


def dict_to_exercise(data: dict[str, Any]) -> Exercise:
    """
    Convert dict to Exercise.

    Accepts both the native keys (repetitions_label, image_ref) and the
    hosted-document keys (repetitions, imageUrl).

    Raises:
        ValidationError: If the name is missing or blank
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Exercise must be a mapping, got {data!r}")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"Exercise name must be a non-empty string, got {name!r}")

    reps = _first(data, "repetitions_label", "repetitions")
    image = _first(data, "image_ref", "imageUrl", "image_url")
    return Exercise(
        name=name,
        # Display-only: keep whatever the user typed, as text
        repetitions_label=str(reps) if reps not in (None, "") else None,
        image_ref=str(image) if image not in (None, "") else None,
    )


def routine_to_dict(routine: Routine) -> dict[str, Any]:
    """Convert Routine to JSON-compatible dict."""
    d: dict[str, Any] = {
        "id": routine.id,
        "name": routine.name,
        "type": routine.type,
        "series_count": routine.series_count,
        "exercises": [exercise_to_dict(e) for e in routine.exercises],
    }
    if routine.created_at:
        d["created_at"] = routine.created_at
    return d


def dict_to_routine(data: dict[str, Any], routine_id: str | None = None) -> Routine:
    """
    Convert dict to Routine.

    Args:
        data: Dict representation (``series`` is accepted for ``series_count``)
        routine_id: Id to use when data carries none

    Returns:
        Routine instance

    Raises:
        ValidationError: If data is invalid
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Routine must be a mapping, got {type(data).__name__}")

    rid = data.get("id", routine_id)
    if rid is None or not str(rid).strip():
        raise ValidationError("Routine id is required")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"Routine {rid}: name must be a non-empty string")

    activity_type = validate_activity_type(data.get("type", ""))

    try:
        series_count = int(_first(data, "series_count", "series", default=1))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Routine {rid}: series count must be an integer") from e
    validate_positive(series_count, "series_count")

    raw_exercises = data.get("exercises") or []
    if not isinstance(raw_exercises, list) or not raw_exercises:
        raise ValidationError(f"Routine {rid}: at least one exercise is required")

    return Routine(
        id=str(rid),
        name=name,
        type=activity_type,
        series_count=series_count,
        exercises=tuple(dict_to_exercise(e) for e in raw_exercises),
        created_at=_first(data, "created_at", "createdAt"),
    )


def monthly_stat_to_dict(record: MonthlyStatRecord) -> dict[str, Any]:
    """Convert MonthlyStatRecord to the stored document shape."""
    return {
        "year": record.year,
        "month": record.month,
        "stretch": record.stretch,
        "workout": record.workout,
        "running": record.running,
        "sports": record.sports,
        "effort": list(record.effort_samples),
        "calories": record.calories_total,
        "km": record.distance_km_total,
    }


def dict_to_monthly_stat(data: dict[str, Any], year: int, month: int) -> MonthlyStatRecord:
    """
    Convert a stored statistics document to MonthlyStatRecord.

    Missing fields default to zero / empty, matching records written by
    older clients that only set the fields they touched.

    Raises:
        ValidationError: If a field has the wrong type or range
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Statistics for {year}-{month:02d} must be a mapping")
    try:
        counts = {t: int(data.get(t, 0) or 0) for t in ACTIVITY_TYPES}
        efforts = [int(e) for e in (data.get("effort") or [])]
        calories = float(data.get("calories", 0) or 0)
        km = float(data.get("km", 0) or 0)
        return MonthlyStatRecord(
            year=int(data.get("year", year)),
            month=validate_month(int(data.get("month", month))),
            effort_samples=efforts,
            calories_total=calories,
            distance_km_total=km,
            **counts,
        )
    except ValidationError:
        raise
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid statistics for {year}-{month:02d}: {e}") from e
