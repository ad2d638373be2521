"""
Error taxonomy for move-tracker.

ValidationError and NotFoundError are recoverable by the caller (re-prompt,
pick another routine).  PersistenceError is reported to the user but never
rolls back a finished session.  InvalidTransitionError marks a programming
error: an event was dispatched in a state that does not accept it.
"""


class ValidationError(ValueError):
    """Raised when user-supplied data fails validation."""

    pass


class NotFoundError(LookupError):
    """Raised when a routine id does not resolve in the document store."""

    pass


class PersistenceError(Exception):
    """Raised when a write to the document store fails."""

    pass


class InvalidTransitionError(RuntimeError):
    """Raised when an event is not valid for the current session state."""

    pass
