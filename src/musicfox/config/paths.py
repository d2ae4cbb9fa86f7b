"""Centralized path definitions for musicfox.

Single source of truth for all filesystem paths used across the application.
Respects $XDG_CONFIG_HOME when set.
"""

from __future__ import annotations

import os
from pathlib import Path

_xdg_config = os.environ.get("XDG_CONFIG_HOME")

SECURE_FILE_MODE = 0o600
SECURE_DIR_MODE = 0o700

CONFIG_DIR = (
    (Path(_xdg_config) / "musicfox") if _xdg_config else (Path.home() / ".config" / "musicfox")
)
CONFIG_FILE = CONFIG_DIR / "config.toml"
KEYMAP_FILE = CONFIG_DIR / "keymap.toml"
# Browser-header auth file understood by ytmusicapi.
AUTH_FILE = CONFIG_DIR / "auth.json"
SESSION_STATE_FILE = CONFIG_DIR / "session.json"

_dirs_ensured = False


def ensure_dirs() -> None:
    """Create the config directory with secure permissions.

    Called lazily (not at import time) so that importing the module does not
    touch the disk.
    """
    global _dirs_ensured
    if _dirs_ensured:
        return
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    os.chmod(CONFIG_DIR, SECURE_DIR_MODE)
    _dirs_ensured = True
