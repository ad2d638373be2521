"""
Data models for move-tracker.

Routine and Exercise are immutable definitions supplied by the routine
store.  Session is the transient, frozen value the state machine replaces
on every event.  StatTotals / MonthlyStatRecord hold the aggregated
counters folded from completed sessions.
"""

import math
from dataclasses import dataclass, field
from typing import Literal

from .config import ACTIVITY_TYPES, EFFORT_MAX, EFFORT_MIN, MONTHS_PER_YEAR, OUTCOME_FREE_TYPES
from .errors import ValidationError

ActivityType = Literal["stretch", "workout", "running", "sports"]
SessionState = Literal["running", "paused", "awaiting_outcome", "completed", "exited"]

TERMINAL_STATES: frozenset[str] = frozenset({"completed", "exited"})


def _is_non_negative(value: float) -> bool:
    """True for finite values >= 0; NaN and infinities are rejected."""
    return math.isfinite(value) and value >= 0


@dataclass(frozen=True)
class Exercise:
    """
    One step of a routine.

    repetitions_label is display-only free text ("3x12", "30 seconds");
    it is never parsed as a number.
    """

    name: str
    repetitions_label: str | None = None
    image_ref: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Exercise name must be a non-empty string")


@dataclass(frozen=True)
class Routine:
    """
    An ordered exercise sequence repeated series_count times.

    Immutable: a running session borrows it read-only.
    """

    id: str
    name: str
    type: ActivityType
    series_count: int
    exercises: tuple[Exercise, ...]
    created_at: str | None = None  # ISO timestamp, informational only

    def __post_init__(self) -> None:
        """Validate routine definition."""
        if self.type not in ACTIVITY_TYPES:
            raise ValueError(
                f"Invalid routine type: {self.type!r}. Must be one of {ACTIVITY_TYPES}"
            )
        if self.series_count < 1:
            raise ValueError("series_count must be at least 1")
        # Accept any sequence but store a tuple so the routine stays immutable
        object.__setattr__(self, "exercises", tuple(self.exercises))
        if not self.exercises:
            raise ValueError("A routine needs at least one exercise")

    @property
    def exercise_count(self) -> int:
        return len(self.exercises)

    @property
    def total_steps(self) -> int:
        """Number of completeExercise events needed to finish the routine."""
        return self.series_count * self.exercise_count

    @property
    def requires_outcome(self) -> bool:
        """True if finishing this routine asks for effort / calories / distance."""
        return self.type not in OUTCOME_FREE_TYPES


@dataclass(frozen=True)
class SessionOutcome:
    """
    Post-completion inputs for non-stretch activities.

    Effort is mandatory; calories and distance are optional and must be
    non-negative when present.
    """

    effort: int
    calories_burned: float | None = None
    distance_km: float | None = None

    def __post_init__(self) -> None:
        # bool is an int subclass; True must not pass as effort 1
        if isinstance(self.effort, bool) or not isinstance(self.effort, int):
            raise ValidationError(f"Effort must be an integer, got {self.effort!r}")
        if not EFFORT_MIN <= self.effort <= EFFORT_MAX:
            raise ValidationError(
                f"Effort must be between {EFFORT_MIN} and {EFFORT_MAX}, got {self.effort}"
            )
        if self.calories_burned is not None and not _is_non_negative(self.calories_burned):
            raise ValidationError(f"Calories must be a non-negative number, got {self.calories_burned}")
        if self.distance_km is not None and not _is_non_negative(self.distance_km):
            raise ValidationError(f"Distance must be a non-negative number, got {self.distance_km}")


@dataclass(frozen=True)
class Session:
    """
    One in-progress execution of a Routine.

    Frozen: every event produces a new Session, so a value handed to the
    UI is a stable snapshot.
    """

    routine: Routine
    current_series: int = 1
    current_exercise_index: int = 0
    elapsed_seconds: int = 0
    state: SessionState = "running"

    @property
    def current_exercise(self) -> Exercise:
        return self.routine.exercises[self.current_exercise_index]

    @property
    def is_last_exercise(self) -> bool:
        return self.current_exercise_index == self.routine.exercise_count - 1

    @property
    def is_last_series(self) -> bool:
        return self.current_series == self.routine.series_count

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def progress(self) -> float:
        """
        Fraction of the routine reached, counting the current exercise.

        Always in (0, 1]; exactly 1.0 on the last exercise of the last series.
        """
        n = self.routine.exercise_count
        done = (self.current_series - 1) * n + self.current_exercise_index + 1
        return done / self.routine.total_steps

    @property
    def elapsed_display(self) -> str:
        return format_elapsed(self.elapsed_seconds)


@dataclass
class StatTotals:
    """
    Aggregated counters for any span of time.

    Used directly as the yearly aggregate (derived on read, never stored).
    """

    stretch: int = 0
    workout: int = 0
    running: int = 0
    sports: int = 0
    effort_samples: list[int] = field(default_factory=list)
    calories_total: float = 0
    distance_km_total: float = 0

    def count_for(self, activity_type: str) -> int:
        """Return the session count for one activity type."""
        if activity_type not in ACTIVITY_TYPES:
            raise ValueError(f"Unknown activity type: {activity_type!r}")
        return getattr(self, activity_type)

    @property
    def total_sessions(self) -> int:
        return sum(self.count_for(t) for t in ACTIVITY_TYPES)

    def merge(
        self,
        counter_deltas: dict[str, int],
        effort_append: list[int] | None = None,
        calories_delta: float | None = None,
        distance_delta: float | None = None,
    ) -> None:
        """
        Apply a commutative update in place.

        Counters and totals are added, effort samples appended.  Two merges
        applied in either order yield the same counters and totals.
        """
        for activity_type, delta in counter_deltas.items():
            setattr(self, activity_type, self.count_for(activity_type) + delta)
        if effort_append:
            self.effort_samples.extend(effort_append)
        if calories_delta:
            self.calories_total += calories_delta
        if distance_delta:
            self.distance_km_total += distance_delta

    def absorb(self, other: "StatTotals") -> None:
        """Add every field of other into self."""
        self.merge(
            {t: other.count_for(t) for t in ACTIVITY_TYPES},
            effort_append=list(other.effort_samples),
            calories_delta=other.calories_total,
            distance_delta=other.distance_km_total,
        )


@dataclass(kw_only=True)
class MonthlyStatRecord(StatTotals):
    """
    Durable accumulation unit for one calendar month.

    Created lazily by the first completion in that month and only ever
    merged into afterwards.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        """Validate record key and counters."""
        if self.year < 1:
            raise ValueError("year must be positive")
        if not 1 <= self.month <= MONTHS_PER_YEAR:
            raise ValueError(f"month must be in 1..{MONTHS_PER_YEAR}, got {self.month}")
        for activity_type in ACTIVITY_TYPES:
            if getattr(self, activity_type) < 0:
                raise ValueError(f"{activity_type} count must be non-negative")
        for effort in self.effort_samples:
            if not EFFORT_MIN <= effort <= EFFORT_MAX:
                raise ValueError(f"effort sample out of range: {effort}")
        if not _is_non_negative(self.calories_total):
            raise ValueError("calories_total must be non-negative")
        if not _is_non_negative(self.distance_km_total):
            raise ValueError("distance_km_total must be non-negative")

    @classmethod
    def empty(cls, year: int, month: int) -> "MonthlyStatRecord":
        """All-zero record for the given month."""
        return cls(year=year, month=month)


def format_elapsed(seconds: int) -> str:
    """Format a duration as HH:MM:SS."""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
