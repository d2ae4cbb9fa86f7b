"""Session core: menu navigation, playback session, lyrics and the controller loop."""

from __future__ import annotations

from musicfox.core.lyrics import LyricFragment, LyricTimer, LyricTrack, LyricWindow
from musicfox.core.menu import Menu, MenuHooks
from musicfox.core.models import PlayDirection, PlaybackState, PlayMode, Track
from musicfox.core.navigator import MenuNavigator, MenuStack, StackFrame
from musicfox.core.session import PlaybackSession, same_queue

__all__ = [
    "LyricFragment",
    "LyricTimer",
    "LyricTrack",
    "LyricWindow",
    "Menu",
    "MenuHooks",
    "MenuNavigator",
    "MenuStack",
    "StackFrame",
    "PlayDirection",
    "PlaybackState",
    "PlayMode",
    "PlaybackSession",
    "Track",
    "same_queue",
]
