"""move-tracker: routine sessions and monthly activity statistics."""

__version__ = "0.1.0"
