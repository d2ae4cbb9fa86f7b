"""Keybinding system with multi-key sequences and modifier support."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Self

from musicfox.config.paths import KEYMAP_FILE


class Action(str, Enum):
    # Playback
    PLAY_PAUSE = "play_pause"
    NEXT_TRACK = "next_track"
    PREVIOUS_TRACK = "previous_track"
    CYCLE_MODE = "cycle_mode"
    INTELLIGENT = "intelligent"
    SEEK_FORWARD = "seek_forward"
    SEEK_BACKWARD = "seek_backward"
    STOP = "stop"

    # Navigation
    MOVE_DOWN = "move_down"
    MOVE_UP = "move_up"
    MOVE_LEFT = "move_left"
    MOVE_RIGHT = "move_right"
    PAGE_DOWN = "page_down"
    PAGE_UP = "page_up"
    GO_TOP = "go_top"
    GO_BOTTOM = "go_bottom"
    SELECT = "select"
    GO_BACK = "go_back"

    # Pages
    JUMP_TO_CURRENT = "jump_to_current"
    QUEUE = "queue"
    RERENDER = "rerender"
    QUIT = "quit"


class MatchResult(Enum):
    NO_MATCH = "no_match"
    PENDING = "pending"
    EXACT = "exact"


DEFAULT_BINDINGS: dict[str, list[str]] = {
    # Playback
    "play_pause": ["space"],
    "next_track": ["]"],
    "previous_track": ["["],
    "cycle_mode": ["p"],
    "intelligent": ["P"],
    "seek_forward": [">", "."],
    "seek_backward": ["<", ","],
    "stop": ["s"],

    # Navigation
    "move_down": ["j", "down"],
    "move_up": ["k", "up"],
    "move_left": ["h", "left"],
    "move_right": ["l", "right"],
    "page_down": ["C-f", "page_down"],
    "page_up": ["C-b", "page_up"],
    "go_top": ["g g", "home"],
    "go_bottom": ["G", "end"],
    "select": ["enter", "n"],
    "go_back": ["b", "escape", "backspace"],

    # Pages
    "jump_to_current": ["g c"],
    "queue": ["z"],
    "rerender": ["r"],
    "quit": ["q", "C-c"],
}


def parse_key_sequence(raw: str) -> tuple[str, ...]:
    return tuple(raw.strip().split())


@dataclass
class KeyMap:
    bindings: dict[tuple[str, ...], Action] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path = KEYMAP_FILE) -> Self:
        keymap = cls()

        if path.exists():
            with open(path, "rb") as f:
                data = tomllib.load(f)
            keymap._load_from_dict(data)
        else:
            keymap._load_defaults()

        return keymap

    @classmethod
    def defaults(cls) -> Self:
        keymap = cls()
        keymap._load_defaults()
        return keymap

    def _load_defaults(self) -> None:
        for action_name, key_strs in DEFAULT_BINDINGS.items():
            action = Action(action_name)
            for key_str in key_strs:
                seq = parse_key_sequence(key_str)
                self.bindings[seq] = action

    def _load_from_dict(self, data: dict) -> None:
        self._load_defaults()

        for section in data.values():
            if not isinstance(section, dict):
                continue
            for action_name, keys in section.items():
                try:
                    action = Action(action_name)
                except ValueError:
                    continue

                self._remove_action(action)

                if isinstance(keys, str):
                    keys = [keys]
                for key_str in keys:
                    seq = parse_key_sequence(key_str)
                    self.bindings[seq] = action

    def _remove_action(self, action: Action) -> None:
        to_remove = [k for k, v in self.bindings.items() if v == action]
        for key in to_remove:
            del self.bindings[key]

    def match(self, key_sequence: tuple[str, ...]) -> tuple[MatchResult, Action | None]:
        if key_sequence in self.bindings:
            return MatchResult.EXACT, self.bindings[key_sequence]

        for bound_seq in self.bindings:
            if len(bound_seq) > len(key_sequence) and bound_seq[:len(key_sequence)] == key_sequence:
                return MatchResult.PENDING, None

        return MatchResult.NO_MATCH, None

    def get_keys_for_action(self, action: Action) -> list[tuple[str, ...]]:
        return [seq for seq, act in self.bindings.items() if act == action]

    def format_key(self, seq: tuple[str, ...]) -> str:
        return " ".join(seq)


_keymap: KeyMap | None = None


def get_keymap() -> KeyMap:
    global _keymap
    if _keymap is None:
        _keymap = KeyMap.load()
    return _keymap
