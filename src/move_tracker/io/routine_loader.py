"""
YAML routine loader.

Reads routine definitions from a YAML file so they can be imported into a
document store.  Three shapes are accepted:

    routines:            # mapping with a routines list
      - name: Morning stretch
        type: stretch
        ...
    - name: ...          # bare list
    name: Leg day        # single routine mapping

Routines without an ``id`` get one derived from their name, and routines
without ``created_at`` are stamped with the import time.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ..core.errors import ValidationError
from ..core.models import Routine
from .serializers import dict_to_routine


def slugify(name: str) -> str:
    """Derive a routine id from its name ("Leg Day #2" -> "leg-day-2")."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "routine"


def _routine_dicts(data: Any) -> list[dict[str, Any]]:
    if isinstance(data, dict) and "routines" in data:
        data = data["routines"]
    elif isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValidationError("Expected a routine mapping or a list of routines")
    return data


def load_routines_from_yaml(path: str | Path, now: datetime | None = None) -> list[Routine]:
    """
    Parse every routine in a YAML file.

    Args:
        path: YAML file to read
        now: Timestamp for routines without created_at (default: now)

    Returns:
        Routines in file order

    Raises:
        ValidationError: If the file cannot be parsed or a routine is invalid
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValidationError(f"Error parsing {path}: {e}") from e

    stamp = (now or datetime.now()).isoformat(timespec="seconds")
    routines: list[Routine] = []
    seen: set[str] = set()

    for i, raw in enumerate(_routine_dicts(data), 1):
        if not isinstance(raw, dict):
            raise ValidationError(f"{path}: routine #{i} must be a mapping")
        raw = dict(raw)
        raw.setdefault("id", slugify(str(raw.get("name", ""))))
        raw.setdefault("created_at", stamp)
        try:
            routine = dict_to_routine(raw)
        except ValidationError as e:
            raise ValidationError(f"{path}: routine #{i}: {e}") from e
        if routine.id in seen:
            raise ValidationError(f"{path}: duplicate routine id '{routine.id}'")
        seen.add(routine.id)
        routines.append(routine)

    return routines
