"""
Configuration constants for the activity session engine.

All adjustable parameters are centralized here.  User-level settings
(data directory, user id, log level) are layered on top of
DEFAULT_SETTINGS by config_loader.load_settings().
"""

from typing import Any, Final

# =============================================================================
# ACTIVITY TYPES
# =============================================================================

ACTIVITY_TYPES: Final[tuple[str, ...]] = ("stretch", "workout", "running", "sports")

# Types that finish without asking for effort / calories / distance
OUTCOME_FREE_TYPES: Final[frozenset[str]] = frozenset({"stretch"})

# =============================================================================
# SESSION OUTCOME
# =============================================================================

EFFORT_MIN: Final[int] = 1
EFFORT_MAX: Final[int] = 5

# =============================================================================
# CLOCK
# =============================================================================

TICK_INTERVAL_SECONDS: Final[float] = 1.0

# =============================================================================
# STATISTICS
# =============================================================================

MONTHS_PER_YEAR: Final[int] = 12
AVG_EFFORT_DECIMALS: Final[int] = 1

# =============================================================================
# USER SETTINGS
# =============================================================================

DEFAULT_USER_ID: Final[str] = "local"
APP_DIR_NAME: Final[str] = ".move-tracker"
HOME_ENV_VAR: Final[str] = "MOVE_TRACKER_HOME"

DEFAULT_SETTINGS: Final[dict[str, Any]] = {
    "user_id": DEFAULT_USER_ID,
    "data_dir": None,  # None = ~/.move-tracker (or $MOVE_TRACKER_HOME)
    "log_level": "WARNING",
}
