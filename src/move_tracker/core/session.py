"""
Activity session state machine.

The machine is a pure function, dispatch(session, event), over the frozen
Session value and a small set of event types.  SessionEngine wraps it with
the caller-facing API: it owns the single live Session, drains clock ticks
before each event, and hands a completed session to the statistics
aggregator.

States and transitions (initial = running):

    running   --tick-->              running   (elapsed += 1)
    running   --pause-->             paused
    paused    --resume-->            running
    running/paused --complete-->     running   (next exercise / next series)
    running/paused --complete(last)-> completed         (stretch)
                                   -> awaiting_outcome  (other types)
    awaiting_outcome --submit-->     completed (effort validated)
    any non-terminal --exit-->       exited    (no statistics)

Ticks outside running are dropped.  Any other event that the current state
does not accept raises InvalidTransitionError.
"""

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from typing import Callable, Union

from .clock import Clock, SystemClock, Ticker
from .errors import InvalidTransitionError, PersistenceError, ValidationError
from .models import Routine, Session, SessionOutcome
from .stats import StatisticsAggregator

logger = logging.getLogger(__name__)


# =============================================================================
# EVENTS
# =============================================================================


@dataclass(frozen=True)
class Tick:
    """One clock interval elapsed."""


@dataclass(frozen=True)
class Pause:
    """Stop the elapsed-time counter."""


@dataclass(frozen=True)
class Resume:
    """Restart the elapsed-time counter."""


@dataclass(frozen=True)
class CompleteExercise:
    """The user finished the current exercise."""


@dataclass(frozen=True)
class SubmitOutcome:
    """Effort / calories / distance entered after a non-stretch routine."""

    effort: int | None
    calories_burned: float | None = None
    distance_km: float | None = None


@dataclass(frozen=True)
class Exit:
    """Abandon the session without recording anything."""


Event = Union[Tick, Pause, Resume, CompleteExercise, SubmitOutcome, Exit]


@dataclass(frozen=True)
class Transition:
    """Result of dispatching one event."""

    session: Session
    outcome: SessionOutcome | None = None

    @property
    def completed(self) -> bool:
        return self.session.state == "completed"


# =============================================================================
# PURE TRANSITION FUNCTION
# =============================================================================


def _reject(session: Session, event: Event) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"{type(event).__name__} is not valid in state '{session.state}'"
    )


def _complete_exercise(session: Session) -> Session:
    if not session.is_last_exercise:
        return replace(session, current_exercise_index=session.current_exercise_index + 1)
    if not session.is_last_series:
        return replace(session, current_series=session.current_series + 1, current_exercise_index=0)
    if session.routine.requires_outcome:
        return replace(session, state="awaiting_outcome")
    return replace(session, state="completed")


def build_outcome(event: SubmitOutcome) -> SessionOutcome:
    """
    Validate the submitted outcome fields.

    Raises:
        ValidationError: If effort is missing or out of range, or a
            calories/distance value is negative
    """
    if event.effort is None:
        raise ValidationError("Effort is required")
    return SessionOutcome(
        effort=event.effort,
        calories_burned=event.calories_burned,
        distance_km=event.distance_km,
    )


def dispatch(session: Session, event: Event) -> Transition:
    """
    Apply one event to a session and return the resulting transition.

    The input session is never modified.

    Raises:
        InvalidTransitionError: If the event is not accepted in the current state
        ValidationError: If a SubmitOutcome carries invalid values; the
            session stays in awaiting_outcome
    """
    state = session.state

    if isinstance(event, Tick):
        if state != "running":
            return Transition(session)
        return Transition(replace(session, elapsed_seconds=session.elapsed_seconds + 1))

    if session.is_terminal:
        raise _reject(session, event)

    if isinstance(event, Exit):
        return Transition(replace(session, state="exited"))

    if isinstance(event, Pause):
        if state != "running":
            raise _reject(session, event)
        return Transition(replace(session, state="paused"))

    if isinstance(event, Resume):
        if state != "paused":
            raise _reject(session, event)
        return Transition(replace(session, state="running"))

    if isinstance(event, CompleteExercise):
        if state not in ("running", "paused"):
            raise _reject(session, event)
        nxt = _complete_exercise(session)
        # Moving to the next exercise restarts the clock if it was paused
        if nxt.state == "paused":
            nxt = replace(nxt, state="running")
        return Transition(nxt)

    if isinstance(event, SubmitOutcome):
        if state != "awaiting_outcome":
            raise _reject(session, event)
        outcome = build_outcome(event)
        return Transition(replace(session, state="completed"), outcome)

    raise TypeError(f"Unknown event: {event!r}")


# =============================================================================
# ENGINE
# =============================================================================


class SessionEngine:
    """
    Drives one session at a time for one user.

    Every public method returns the new Session snapshot.  Once a session
    reaches completed or exited it is dropped and start_session() must be
    called again.
    """

    def __init__(
        self,
        store,
        user_id: str,
        clock: Clock | None = None,
        aggregator: StatisticsAggregator | None = None,
        executor: Executor | None = None,
        on_persistence_error: Callable[[PersistenceError], None] | None = None,
    ):
        """
        Initialize the engine.

        Args:
            store: DocumentStore used to resolve routine ids
            user_id: Identity passed to every store call
            clock: Time source (default: SystemClock)
            aggregator: Statistics sink (default: one built on store/clock)
            executor: If given, statistics writes are submitted here and
                not awaited; otherwise they run inline
            on_persistence_error: Called when a statistics write fails
        """
        self.store = store
        self.user_id = user_id
        self.clock = clock or SystemClock()
        self.aggregator = aggregator or StatisticsAggregator(store, user_id, self.clock)
        self.executor = executor
        self.on_persistence_error = on_persistence_error
        self.ticker = Ticker(self.clock)
        self.last_persistence_error: PersistenceError | None = None
        self.pending_write: Future | None = None
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        """The live session, or None when idle."""
        return self._session

    def start_session(self, routine: Routine | str) -> Session:
        """
        Start a session from a routine or a routine id.

        Raises:
            NotFoundError: If a routine id does not resolve
            InvalidTransitionError: If another session is still live
        """
        if self._session is not None:
            raise InvalidTransitionError("A session is already in progress")
        if isinstance(routine, str):
            routine = self.store.get_routine(self.user_id, routine)

        self._session = Session(routine=routine)
        self.last_persistence_error = None
        self.ticker.start()
        logger.info("Started session for routine %s (%s)", routine.id, routine.type)
        return self._session

    def sync_ticks(self) -> Session:
        """Fold all clock ticks that are due into the session."""
        session = self._require_session()
        for _ in range(self.ticker.due()):
            session = dispatch(session, Tick()).session
        self._session = session
        return session

    def pause(self) -> Session:
        return self._apply(Pause())

    def resume(self) -> Session:
        return self._apply(Resume())

    def complete_current_exercise(self) -> Session:
        return self._apply(CompleteExercise())

    def submit_outcome(
        self,
        effort: int | None,
        calories: float | None = None,
        distance_km: float | None = None,
    ) -> Session:
        return self._apply(SubmitOutcome(effort, calories, distance_km))

    def exit_session(self) -> Session:
        return self._apply(Exit())

    def _require_session(self) -> Session:
        if self._session is None:
            raise InvalidTransitionError("No session in progress")
        return self._session

    def _apply(self, event: Event) -> Session:
        self.sync_ticks()
        before = self._require_session()
        transition = dispatch(before, event)
        session = transition.session
        logger.debug(
            "%s: %s -> %s (series %d, exercise %d)",
            type(event).__name__,
            before.state,
            session.state,
            session.current_series,
            session.current_exercise_index,
        )

        if session.state == "running":
            if not self.ticker.active:
                self.ticker.start()
        else:
            self.ticker.cancel()

        if session.is_terminal:
            self._session = None
            logger.info(
                "Session %s for routine %s after %s",
                session.state,
                session.routine.id,
                session.elapsed_display,
            )
        else:
            self._session = session

        if transition.completed:
            self._record(session, transition.outcome)
        return session

    def _record(self, session: Session, outcome: SessionOutcome | None) -> None:
        activity_type = session.routine.type
        if self.executor is None:
            try:
                self.aggregator.record_completion(activity_type, outcome)
            except PersistenceError as exc:
                self._report(exc)
            return

        future = self.executor.submit(self.aggregator.record_completion, activity_type, outcome)
        future.add_done_callback(self._on_write_done)
        self.pending_write = future

    def _on_write_done(self, future: Future) -> None:
        if future.cancelled():
            logger.warning("Statistics write was cancelled")
            return
        exc = future.exception()
        if exc is None:
            return
        if isinstance(exc, PersistenceError):
            self._report(exc)
        else:
            logger.error("Statistics write crashed", exc_info=exc)

    def _report(self, exc: PersistenceError) -> None:
        logger.warning("Could not save statistics: %s", exc)
        self.last_persistence_error = exc
        if self.on_persistence_error is not None:
            self.on_persistence_error(exc)
