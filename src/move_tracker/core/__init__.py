"""
Core session engine and statistics for move-tracker.

The state machine lives in session.py, the monthly/yearly rollups in
stats.py; both are independent of any UI or storage backend.
"""

from .errors import InvalidTransitionError, NotFoundError, PersistenceError, ValidationError
from .models import Exercise, MonthlyStatRecord, Routine, Session, SessionOutcome, StatTotals
from .session import SessionEngine, dispatch
from .stats import StatisticsAggregator, average_effort

__all__ = [
    "Exercise",
    "InvalidTransitionError",
    "MonthlyStatRecord",
    "NotFoundError",
    "PersistenceError",
    "Routine",
    "Session",
    "SessionEngine",
    "SessionOutcome",
    "StatTotals",
    "StatisticsAggregator",
    "ValidationError",
    "average_effort",
    "dispatch",
]
