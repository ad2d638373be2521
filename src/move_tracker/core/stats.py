"""
Monthly / yearly activity statistics.

Completed sessions are folded into one MonthlyStatRecord per calendar
month through the document store's atomic merge.  Yearly figures are never
stored; they are summed from the twelve monthly records on read.
"""

import logging
from statistics import fmean
from typing import Iterable

from .clock import Clock, SystemClock
from .config import ACTIVITY_TYPES, AVG_EFFORT_DECIMALS, MONTHS_PER_YEAR
from .errors import ValidationError
from .models import MonthlyStatRecord, SessionOutcome, StatTotals

logger = logging.getLogger(__name__)


def average_effort(samples: list[int]) -> float:
    """
    Mean effort rounded to one decimal; 0 for no samples.
    """
    if not samples:
        return 0
    return round(fmean(samples), AVG_EFFORT_DECIMALS)


def sum_records(records: Iterable[StatTotals]) -> StatTotals:
    """Fold records into one StatTotals (counts and totals summed, efforts concatenated)."""
    totals = StatTotals()
    for record in records:
        totals.absorb(record)
    return totals


def _validate_month(month: int) -> None:
    if not 1 <= month <= MONTHS_PER_YEAR:
        raise ValidationError(f"Month must be in 1..{MONTHS_PER_YEAR}, got {month}")


class StatisticsAggregator:
    """Records completed sessions and reads back month / year rollups for one user."""

    def __init__(self, store, user_id: str, clock: Clock | None = None):
        self.store = store
        self.user_id = user_id
        self.clock = clock or SystemClock()

    def record_completion(
        self,
        activity_type: str,
        outcome: SessionOutcome | None = None,
    ) -> None:
        """
        Fold one completed session into the current month's record.

        Issues a single merge (counter += 1, effort appended, calories and
        distance added) so concurrent completions never overwrite each
        other.  The record is created with zeros by the store if absent.

        Args:
            activity_type: Routine type of the completed session
            outcome: Effort / calories / distance; None for stretch

        Raises:
            ValidationError: If the type is unknown or an outcome is given
                for a stretch session
            PersistenceError: If the store write fails
        """
        if activity_type not in ACTIVITY_TYPES:
            raise ValidationError(f"Unknown activity type: {activity_type!r}")
        if activity_type == "stretch" and outcome is not None:
            raise ValidationError("Stretch sessions do not take an outcome")

        now = self.clock.now()
        effort_append = None
        calories_delta = None
        distance_delta = None
        if outcome is not None:
            effort_append = [outcome.effort]
            calories_delta = outcome.calories_burned
            distance_delta = outcome.distance_km

        self.store.upsert_monthly_stat(
            self.user_id,
            now.year,
            now.month,
            {activity_type: 1},
            effort_append=effort_append,
            calories_delta=calories_delta,
            distance_delta=distance_delta,
        )
        logger.info("Recorded %s session for %04d-%02d", activity_type, now.year, now.month)

    def get_month_stats(self, year: int, month: int) -> MonthlyStatRecord:
        """Return the record for (year, month), or an all-zero record if none exists."""
        _validate_month(month)
        record = self.store.get_monthly_stat(self.user_id, year, month)
        return record if record is not None else MonthlyStatRecord.empty(year, month)

    def get_year_stats(self, year: int) -> StatTotals:
        """Sum the twelve monthly records of a year; missing months count as zero."""
        return sum_records(self.get_month_stats(year, m) for m in range(1, MONTHS_PER_YEAR + 1))

    def current_month_stats(self) -> MonthlyStatRecord:
        now = self.clock.now()
        return self.get_month_stats(now.year, now.month)

    def current_year_stats(self) -> StatTotals:
        return self.get_year_stats(self.clock.now().year)
