"""Plain data types shared by the navigator and the playback session."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum, auto
from typing import Any

from musicfox.utils.formatting import format_duration


class PlayMode(StrEnum):
    """Index-advance policy of the play queue."""

    LIST_LOOP = auto()
    ORDER = auto()
    SINGLE_LOOP = auto()
    RANDOM = auto()
    INTELLIGENT = auto()


MODE_NAMES: dict[PlayMode, str] = {
    PlayMode.LIST_LOOP: "List Loop",
    PlayMode.ORDER: "Order",
    PlayMode.SINGLE_LOOP: "Single Loop",
    PlayMode.RANDOM: "Random",
    PlayMode.INTELLIGENT: "Intelligent",
}


class PlayDirection(StrEnum):
    NEXT = auto()
    PREV = auto()


class PlaybackState(StrEnum):
    IDLE = auto()
    RESOLVING = auto()
    PLAYING = auto()
    PAUSED = auto()
    STOPPED = auto()
    FAILED = auto()


class EntryKind(StrEnum):
    TRACK = auto()
    PLAYLIST = auto()
    ALBUM = auto()
    CATEGORY = auto()


@dataclass(frozen=True, slots=True)
class Item:
    """Display projection of a catalog entity: one menu line."""

    title: str
    subtitle: str = ""


@dataclass(slots=True)
class Track:
    """A playable unit."""

    id: str
    title: str
    artists: list[str] = field(default_factory=list)
    duration: float = 0.0
    album: str = ""
    resolved_url: str | None = None
    codec: str | None = None

    @property
    def artist_name(self) -> str:
        return ", ".join(self.artists)

    def as_item(self) -> Item:
        subtitle = self.artist_name
        if self.duration:
            subtitle = f"{subtitle} · {format_duration(int(self.duration))}".strip(" ·")
        return Item(self.title, subtitle)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artists": list(self.artists),
            "duration": self.duration,
            "album": self.album,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Track:
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            artists=list(data.get("artists") or []),
            duration=float(data.get("duration") or 0.0),
            album=data.get("album") or "",
        )


@dataclass(slots=True)
class CatalogEntry:
    """One row returned by the catalog: a track or a browsable container."""

    kind: EntryKind
    id: str
    title: str
    subtitle: str = ""
    track: Track | None = None

    @classmethod
    def for_track(cls, track: Track) -> CatalogEntry:
        item = track.as_item()
        return cls(EntryKind.TRACK, track.id, item.title, item.subtitle, track)

    def as_item(self) -> Item:
        return Item(self.title, self.subtitle)


@dataclass(slots=True)
class PlayQueue:
    """Ordered tracks subject to playback advancement.

    ``origin_key`` records which menu produced the queue; it decides whether
    the on-screen cursor should follow playback.
    """

    tracks: list[Track] = field(default_factory=list)
    current_index: int = 0
    origin_key: str = ""

    def __len__(self) -> int:
        return len(self.tracks)

    @property
    def current(self) -> Track | None:
        if 0 <= self.current_index < len(self.tracks):
            return self.tracks[self.current_index]
        return None

    @property
    def track_ids(self) -> list[str]:
        return [t.id for t in self.tracks]


@dataclass(frozen=True, slots=True)
class QueueSnapshot:
    """Persisted form of a play queue, used to resume the last session."""

    tracks: tuple[Track, ...]
    current_index: int
    origin_key: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "tracks": [t.to_dict() for t in self.tracks],
            "current_index": self.current_index,
            "origin_key": self.origin_key,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueueSnapshot:
        raw_tracks = data.get("tracks") or []
        tracks = tuple(Track.from_dict(t) for t in raw_tracks if isinstance(t, dict))
        index = data.get("current_index", 0)
        if not isinstance(index, int) or not 0 <= index < max(len(tracks), 1):
            index = 0
        return cls(tracks=tracks, current_index=index, origin_key=data.get("origin_key", ""))
