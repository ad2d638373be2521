"""
YAML → settings loader.

Starts from DEFAULT_SETTINGS in config.py and merges user overrides from
~/.move-tracker/settings.yaml (or $MOVE_TRACKER_HOME/settings.yaml).

Usage:
    from move_tracker.core.config_loader import load_settings
    settings = load_settings()
    user_id = settings["user_id"]

If the user file exists but cannot be parsed, a warning is issued and the
defaults are used.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Any

import yaml

from .config import APP_DIR_NAME, DEFAULT_SETTINGS, HOME_ENV_VAR

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML mapping; warn and return {} if it is unreadable."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        warnings.warn(f"move-tracker: ignoring {path} ({exc})", stacklevel=2)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        warnings.warn(f"move-tracker: ignoring {path} (not a mapping)", stacklevel=2)
        return {}
    return data


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_app_home() -> Path:
    """Return the application directory: $MOVE_TRACKER_HOME or ~/.move-tracker."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    home = Path(os.environ.get("HOME", "~")).expanduser()
    return home / APP_DIR_NAME


def get_user_settings_path() -> Path | None:
    """Return the user settings.yaml if it exists, else None."""
    p = get_app_home() / "settings.yaml"
    return p if p.exists() else None


def load_settings(path: Path | None = None) -> dict[str, Any]:
    """
    Load and merge settings.

    Load order (later overrides earlier):
    1. DEFAULT_SETTINGS
    2. *path* if given, else the user settings.yaml

    Returns:
        Merged settings dict (always contains every default key)
    """
    settings = _deep_merge({}, DEFAULT_SETTINGS)
    source = path if path is not None else get_user_settings_path()
    if source is not None:
        settings = _deep_merge(settings, _load_yaml_file(source))
    return settings
