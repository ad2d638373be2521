"""
Document store gateway for routines and monthly statistics.

DocumentStore is the narrow interface the session engine and statistics
aggregator talk to.  Every call takes the user id explicitly.  Statistics
writes go through upsert_monthly_stat(), a commutative merge (counters and
totals added, effort samples appended) executed under a lock, so two
completions landing at the same time both count, even from separate
processes.

Two implementations:
- InMemoryDocumentStore: process-local, used by tests and scripted runs
- JsonDocumentStore: one JSON file per routine list / month on disk
"""

import contextlib
import copy
import fcntl
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar, Iterator

from ..core.config import ACTIVITY_TYPES
from ..core.config_loader import get_app_home
from ..core.errors import NotFoundError, PersistenceError, ValidationError
from ..core.models import MonthlyStatRecord, Routine
from .serializers import (
    dict_to_monthly_stat,
    dict_to_routine,
    monthly_stat_to_dict,
    routine_to_dict,
    validate_month,
    validate_non_negative,
)

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".lock"


class DocumentStore(ABC):
    """Keyed reads and atomic merges for one or more users."""

    @abstractmethod
    def get_routine(self, user_id: str, routine_id: str) -> Routine:
        """
        Return a routine by id.

        Raises:
            NotFoundError: If no routine has that id
        """

    @abstractmethod
    def list_routines(self, user_id: str) -> list[Routine]:
        """Return all routines of a user in stored order."""

    @abstractmethod
    def save_routine(self, user_id: str, routine: Routine) -> None:
        """Insert a routine or replace the one with the same id."""

    @abstractmethod
    def get_monthly_stat(self, user_id: str, year: int, month: int) -> MonthlyStatRecord | None:
        """Return the statistics record for a month, or None if none exists."""

    @abstractmethod
    def upsert_monthly_stat(
        self,
        user_id: str,
        year: int,
        month: int,
        counter_deltas: dict[str, int],
        effort_append: list[int] | None = None,
        calories_delta: float | None = None,
        distance_delta: float | None = None,
    ) -> None:
        """
        Atomically merge deltas into a month's record, creating it if absent.

        Raises:
            ValidationError: If a delta is invalid
            PersistenceError: If the write fails
        """

    @staticmethod
    def _check_user(user_id: str) -> str:
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user_id must be a non-empty string")
        return user_id

    @staticmethod
    def _check_merge(
        month: int,
        counter_deltas: dict[str, int],
        calories_delta: float | None,
        distance_delta: float | None,
    ) -> None:
        validate_month(month)
        for activity_type, delta in counter_deltas.items():
            if activity_type not in ACTIVITY_TYPES:
                raise ValidationError(f"Unknown counter: {activity_type!r}")
            validate_non_negative(delta, f"{activity_type} delta")
        if calories_delta is not None:
            validate_non_negative(calories_delta, "calories_delta")
        if distance_delta is not None:
            validate_non_negative(distance_delta, "distance_delta")


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store.

    Records handed out are copies; mutating them does not touch the store.
    """

    def __init__(self):
        self._routines: dict[str, dict[str, Routine]] = {}
        self._stats: dict[tuple[str, int, int], MonthlyStatRecord] = {}
        self._lock = threading.Lock()

    def get_routine(self, user_id: str, routine_id: str) -> Routine:
        self._check_user(user_id)
        try:
            return self._routines[user_id][routine_id]
        except KeyError:
            raise NotFoundError(f"Routine not found: {routine_id}") from None

    def list_routines(self, user_id: str) -> list[Routine]:
        self._check_user(user_id)
        return list(self._routines.get(user_id, {}).values())

    def save_routine(self, user_id: str, routine: Routine) -> None:
        self._check_user(user_id)
        with self._lock:
            self._routines.setdefault(user_id, {})[routine.id] = routine

    def get_monthly_stat(self, user_id: str, year: int, month: int) -> MonthlyStatRecord | None:
        self._check_user(user_id)
        record = self._stats.get((user_id, year, month))
        return copy.deepcopy(record) if record is not None else None

    def upsert_monthly_stat(
        self,
        user_id: str,
        year: int,
        month: int,
        counter_deltas: dict[str, int],
        effort_append: list[int] | None = None,
        calories_delta: float | None = None,
        distance_delta: float | None = None,
    ) -> None:
        self._check_user(user_id)
        self._check_merge(month, counter_deltas, calories_delta, distance_delta)
        with self._lock:
            record = self._stats.get((user_id, year, month))
            if record is None:
                record = MonthlyStatRecord.empty(year, month)
                self._stats[(user_id, year, month)] = record
            record.merge(counter_deltas, effort_append, calories_delta, distance_delta)


class JsonDocumentStore(DocumentStore):
    """
    File-backed store.

    Layout under the root directory:
        <user>/routines.json                  list of routine dicts
        <user>/statistics/<year>/<month>.json one statistics document

    Writes for one user are serialized by a thread lock shared per root and
    an exclusive flock on <user>/.lock, held across the whole
    read-merge-replace sequence, so concurrent processes never lose an
    update.  Files are written through a temp file + os.replace, so a
    reader never sees a torn file.
    """

    _locks: ClassVar[dict[Path, threading.Lock]] = {}
    _locks_guard: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, root: str | Path):
        """
        Initialize the store.

        Args:
            root: Directory holding one sub-directory per user
        """
        self.root = Path(root).expanduser()
        key = self.root.resolve()
        with self._locks_guard:
            self._lock = self._locks.setdefault(key, threading.Lock())

    # -- paths -------------------------------------------------------------

    def user_dir(self, user_id: str) -> Path:
        return self.root / self._check_user(user_id)

    def routines_path(self, user_id: str) -> Path:
        return self.user_dir(user_id) / "routines.json"

    def stat_path(self, user_id: str, year: int, month: int) -> Path:
        return self.user_dir(user_id) / "statistics" / str(year) / f"{month}.json"

    # -- low level ---------------------------------------------------------

    @contextlib.contextmanager
    def _exclusive(self, user_id: str) -> Iterator[None]:
        """Hold the per-user write lock, across threads and processes."""
        lock_path = self.user_dir(user_id) / LOCK_FILE_NAME
        with self._lock:
            try:
                lock_path.parent.mkdir(parents=True, exist_ok=True)
                f = open(lock_path, "a")
            except OSError as e:
                raise PersistenceError(f"Could not lock {lock_path}: {e}") from e
            with f:
                fcntl.flock(f, fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(f, fcntl.LOCK_UN)

    @staticmethod
    def _read_json(path: Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    @staticmethod
    def _write_json(path: Path, data: Any) -> None:
        """Write data atomically: temp file in the same directory, then replace."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _load_routine_dicts(self, user_id: str) -> list[dict[str, Any]]:
        path = self.routines_path(user_id)
        if not path.exists():
            return []
        try:
            data = self._read_json(path)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Error parsing {path}: {e}") from e
        if not isinstance(data, list):
            raise ValidationError(f"Error parsing {path}: expected a list of routines")
        return data

    # -- routines ----------------------------------------------------------

    def get_routine(self, user_id: str, routine_id: str) -> Routine:
        for routine in self.list_routines(user_id):
            if routine.id == routine_id:
                return routine
        raise NotFoundError(f"Routine not found: {routine_id}")

    def list_routines(self, user_id: str) -> list[Routine]:
        return [dict_to_routine(d) for d in self._load_routine_dicts(user_id)]

    def save_routine(self, user_id: str, routine: Routine) -> None:
        with self._exclusive(user_id):
            items = self._load_routine_dicts(user_id)
            data = routine_to_dict(routine)
            for i, existing in enumerate(items):
                if existing.get("id") == routine.id:
                    items[i] = data
                    break
            else:
                items.append(data)
            try:
                self._write_json(self.routines_path(user_id), items)
            except OSError as e:
                raise PersistenceError(f"Could not save routine {routine.id}: {e}") from e

    # -- statistics --------------------------------------------------------

    def get_monthly_stat(self, user_id: str, year: int, month: int) -> MonthlyStatRecord | None:
        validate_month(month)
        path = self.stat_path(user_id, year, month)
        if not path.exists():
            return None
        try:
            data = self._read_json(path)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Error parsing {path}: {e}") from e
        return dict_to_monthly_stat(data, year, month)

    def upsert_monthly_stat(
        self,
        user_id: str,
        year: int,
        month: int,
        counter_deltas: dict[str, int],
        effort_append: list[int] | None = None,
        calories_delta: float | None = None,
        distance_delta: float | None = None,
    ) -> None:
        self._check_user(user_id)
        self._check_merge(month, counter_deltas, calories_delta, distance_delta)
        path = self.stat_path(user_id, year, month)

        with self._exclusive(user_id):
            try:
                record = self.get_monthly_stat(user_id, year, month)
            except (OSError, ValidationError) as e:
                raise PersistenceError(f"Could not read statistics {path}: {e}") from e
            if record is None:
                record = MonthlyStatRecord.empty(year, month)
            record.merge(counter_deltas, effort_append, calories_delta, distance_delta)
            try:
                self._write_json(path, monthly_stat_to_dict(record))
            except OSError as e:
                raise PersistenceError(f"Could not write statistics {path}: {e}") from e

        logger.debug("Merged %s into %s", counter_deltas, path)


def get_default_data_dir() -> Path:
    """
    Get the default data directory.

    Returns:
        $MOVE_TRACKER_HOME if set, else ~/.move-tracker
    """
    return get_app_home()


def get_default_store() -> JsonDocumentStore:
    """
    Get a JsonDocumentStore at the default location.

    Returns:
        JsonDocumentStore instance
    """
    return JsonDocumentStore(get_default_data_dir())
