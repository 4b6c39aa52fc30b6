"""
config_paths.py
Central helpers for resolving user-writable config directories.

Follows the XDG Base Directory Specification:
  Config lives in $XDG_CONFIG_HOME/Butterfly  (default: ~/.config/Butterfly)

$BUTTERFLY_CONFIG_DIR overrides the whole location (portable installs, tests).
"""

import os
from pathlib import Path

APP_NAME = "Butterfly"
SETTINGS_FILE_NAME = "Settings.json"
LOG_FILE_NAME = "Log.txt"


def get_config_dir() -> Path:
    """Return the app config directory, creating it if it doesn't exist.

    Respects $BUTTERFLY_CONFIG_DIR, then $XDG_CONFIG_HOME; falls back to
    ~/.config/Butterfly.
    """
    override = os.environ.get("BUTTERFLY_CONFIG_DIR")
    if override:
        config_dir = Path(override)
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        base = Path(xdg) if xdg else Path.home() / ".config"
        config_dir = base / APP_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_settings_path() -> Path:
    """Return the path to Settings.json in the config directory.

    Result: ~/.config/Butterfly/Settings.json
    """
    return get_config_dir() / SETTINGS_FILE_NAME


def get_log_path() -> Path:
    """Result: ~/.config/Butterfly/Log.txt"""
    return get_config_dir() / LOG_FILE_NAME


def get_temp_dir() -> Path:
    """Return the scratch directory used while unpacking the Modding API.

    Result: ~/.config/Butterfly/Temp/  (not created here; callers remove it when done)
    """
    return get_config_dir() / "Temp"
