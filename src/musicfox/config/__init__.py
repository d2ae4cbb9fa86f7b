"""Configuration management for musicfox."""

from __future__ import annotations

from musicfox.config.keymap import Action, KeyMap, MatchResult, get_keymap
from musicfox.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "KeyMap", "Action", "MatchResult", "get_keymap"]
