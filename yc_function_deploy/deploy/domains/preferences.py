"""Persistent user preferences.

Stored in the XDG config directory:
~/.config/yc-function-deploy/preferences.json
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PREFERENCES_DIR = Path.home() / ".config" / "yc-function-deploy"
PREFERENCES_FILE = PREFERENCES_DIR / "preferences.json"


def _load_preferences() -> Dict[str, Any]:
    """
    Load preferences from JSON file.

    Returns:
        Dict of preferences, empty if the file is missing or unreadable
    """
    if not PREFERENCES_FILE.exists():
        return {}
    try:
        with open(PREFERENCES_FILE, "r") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to read preferences file {PREFERENCES_FILE}: {e}")
        return {}


def _save_preferences(preferences: Dict[str, Any]) -> None:
    """
    Save preferences to JSON file, creating the config directory if needed.

    Args:
        preferences: Dict of preferences to save
    """
    PREFERENCES_DIR.mkdir(parents=True, exist_ok=True)
    with open(PREFERENCES_FILE, "w") as f:
        json.dump(preferences, f, indent=2)


def get_preference(key: str) -> Optional[str]:
    """
    Get a preference value.

    Args:
        key: Preference key (e.g., "config_path")

    Returns:
        Preference value or None if not set
    """
    return _load_preferences().get(key)


def set_preference(key: str, value: str) -> None:
    """
    Set a preference value.

    Args:
        key: Preference key (e.g., "config_path")
        value: Value to store
    """
    preferences = _load_preferences()
    preferences[key] = value
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' set to: {value}")


def clear_preference(key: str) -> None:
    """
    Remove a preference; a missing key is not an error.

    Args:
        key: Preference key to remove
    """
    preferences = _load_preferences()
    if key not in preferences:
        logger.debug(f"Preference '{key}' not found, nothing to clear")
        return
    del preferences[key]
    _save_preferences(preferences)
    logger.info(f"Preference '{key}' cleared")
