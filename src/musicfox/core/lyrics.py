"""Time-synchronized lyrics: LRC parsing and the rolling lyric window.

LRC lines look like ``[mm:ss.xx] text``. A line may carry several leading
timestamps (the text repeats at each of them) or inline ``<mm:ss.xx>`` word
stamps, which split the line into separate fragments.
"""

from __future__ import annotations

import bisect
import logging
import math
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from musicfox.utils.formatting import format_timestamp

logger = logging.getLogger(__name__)

NO_LYRICS_TEXT = "No lyrics"

_LEADING_STAMP_RE = re.compile(r"^\s*\[(\d+):(\d+(?:\.\d+)?)\]")
_WORD_STAMP_RE = re.compile(r"<(\d+):(\d+(?:\.\d+)?)>")


@dataclass(frozen=True, slots=True)
class LyricFragment:
    start: float  # seconds
    text: str


def _to_seconds(minutes: str, seconds: str) -> float:
    # Millisecond precision, truncated.
    return int(minutes) * 60 + math.floor(float(seconds) * 1000) / 1000


def _parse_line(line: str) -> list[LyricFragment]:
    line = line.strip()
    if not line:
        return []

    stamps: list[float] = []
    while match := _LEADING_STAMP_RE.match(line):
        stamps.append(_to_seconds(match.group(1), match.group(2)))
        line = line[match.end():]
    if not stamps:
        # Metadata tags like [ar:...] or plain text.
        return []

    text = line.strip()
    if len(stamps) > 1:
        return [LyricFragment(ts, text) for ts in stamps]

    if not _WORD_STAMP_RE.search(text):
        return [LyricFragment(stamps[0], text)]

    fragments: list[LyricFragment] = []
    previous = stamps[0]
    start = 0
    for match in _WORD_STAMP_RE.finditer(text):
        fragments.append(LyricFragment(previous, text[start:match.start()].strip()))
        previous = _to_seconds(match.group(1), match.group(2))
        start = match.end()
    fragments.append(LyricFragment(previous, text[start:].strip()))
    return fragments


class LyricTrack:
    """Immutable, time-ordered lyric fragments of one track."""

    def __init__(self, fragments: list[LyricFragment] | tuple[LyricFragment, ...] = ()) -> None:
        # sorted() is stable, so fragments sharing a timestamp keep file order.
        self._fragments: tuple[LyricFragment, ...] = tuple(
            sorted(fragments, key=lambda f: f.start)
        )
        self._starts = [f.start for f in self._fragments]

    @classmethod
    def parse(cls, raw: str) -> LyricTrack:
        fragments: list[LyricFragment] = []
        for line in raw.splitlines():
            fragments.extend(_parse_line(line))
        return cls(fragments)

    @classmethod
    def placeholder(cls) -> LyricTrack:
        return cls([LyricFragment(0.0, NO_LYRICS_TEXT)])

    @classmethod
    def from_payload(cls, raw: str | None) -> LyricTrack:
        """Parse a fetched payload, falling back to the placeholder."""
        if not raw:
            return cls.placeholder()
        track = cls.parse(raw)
        if not track:
            logger.debug("Lyric payload had no timed lines, using placeholder")
            return cls.placeholder()
        return track

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[LyricFragment]:
        return iter(self._fragments)

    @property
    def fragments(self) -> tuple[LyricFragment, ...]:
        return self._fragments

    def fragment_at(self, index: int) -> LyricFragment | None:
        if 0 <= index < len(self._fragments):
            return self._fragments[index]
        return None

    def active_index(self, elapsed: float) -> int:
        """Index of the last fragment starting at or before *elapsed*, or -1."""
        return bisect.bisect_right(self._starts, elapsed) - 1

    def as_lrc(self) -> str:
        return "".join(f"[{format_timestamp(f.start)}]{f.text}\n" for f in self._fragments)


@dataclass(frozen=True, slots=True)
class LyricWindow:
    index: int
    lines: tuple[str, ...]

    @property
    def current(self) -> str:
        return self.lines[len(self.lines) // 2] if self.lines else ""


def window_size_for_rows(rows: int) -> int:
    """Lyric window height that fits in *rows* free terminal rows: 5 or 3."""
    return 5 if rows >= 5 else 3


LyricListener = Callable[[LyricWindow], None]


class LyricTimer:
    """Drives a LyricTrack against elapsed playback time.

    Each tick emits a window of ``window`` consecutive lines centered on the
    active fragment. ``offset`` (seconds) is added to the elapsed time.
    """

    def __init__(
        self,
        track: LyricTrack,
        window: int = 5,
        offset: float = 0.0,
        listener: LyricListener | None = None,
    ) -> None:
        self._track = track
        self._window = window
        self._offset = offset
        self._listener = listener
        self._running = False
        self._last: LyricWindow | None = None

    @property
    def track(self) -> LyricTrack:
        return self._track

    @property
    def running(self) -> bool:
        return self._running

    @property
    def window_size(self) -> int:
        return self._window

    @window_size.setter
    def window_size(self, value: int) -> None:
        self._window = value
        self._last = None

    @property
    def last_window(self) -> LyricWindow | None:
        return self._last

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def rewind(self) -> None:
        """Forget the last window so the next tick recomputes it (after a seek)."""
        self._last = None

    def window_at(self, index: int) -> LyricWindow:
        half = self._window // 2
        lines = []
        for i in range(index - half, index - half + self._window):
            fragment = self._track.fragment_at(i)
            lines.append(fragment.text if fragment is not None else "")
        return LyricWindow(index, tuple(lines))

    def on_tick(self, elapsed: float) -> LyricWindow | None:
        if not self._running:
            return None
        index = self._track.active_index(elapsed + self._offset)
        window = self.window_at(index)
        self._last = window
        if self._listener is not None:
            self._listener(window)
        return window
