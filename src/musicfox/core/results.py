"""Result values returned across the session core.

Failures travel as values, never as control-flow exceptions: adapters catch
library errors at the boundary and hand back one of these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum, auto

from musicfox.core.models import CatalogEntry, Track


class ErrorKind(StrEnum):
    AUTH_REQUIRED = auto()
    NETWORK = auto()
    UNSUPPORTED_MEDIA = auto()
    EXHAUSTED_RETRIES = auto()


class RequestKind(StrEnum):
    LIKED_SONGS = auto()
    LIBRARY_PLAYLISTS = auto()
    LIBRARY_ALBUMS = auto()
    PLAYLIST = auto()
    ALBUM = auto()
    SEARCH = auto()
    SIMILAR = auto()


@dataclass(frozen=True, slots=True)
class CatalogRequest:
    """Descriptor of one catalog page.

    ``target`` is the playlist/album/track id, or the query for SEARCH.
    ``page_token`` is opaque; None asks for the first page.
    """

    kind: RequestKind
    target: str = ""
    page_token: str | None = None
    limit: int = 50


@dataclass(frozen=True, slots=True)
class FetchResult:
    entries: list[CatalogEntry] = field(default_factory=list)
    has_more: bool = False
    next_page_token: str | None = None
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def tracks(self) -> list[Track]:
        return [e.track for e in self.entries if e.track is not None]

    @classmethod
    def auth_required(cls, message: str = "login required") -> FetchResult:
        return cls(error=ErrorKind.AUTH_REQUIRED, message=message)

    @classmethod
    def failed(cls, message: str = "") -> FetchResult:
        return cls(error=ErrorKind.NETWORK, message=message)


@dataclass(frozen=True, slots=True)
class ResolveResult:
    url: str = ""
    codec: str = ""
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.url)

    @classmethod
    def failed(cls, kind: ErrorKind = ErrorKind.NETWORK, message: str = "") -> ResolveResult:
        return cls(error=kind, message=message)


@dataclass(frozen=True, slots=True)
class HookResult:
    """What a navigation hook decided: proceed, veto, or fail with a reason."""

    proceed: bool
    error: ErrorKind | None = None
    message: str = ""

    @classmethod
    def from_fetch(cls, result: FetchResult) -> HookResult:
        if result.ok:
            return PROCEED
        return cls(False, result.error, result.message)


PROCEED = HookResult(True)
HALT = HookResult(False)


@dataclass(frozen=True, slots=True)
class NavResult:
    moved: bool
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def from_hook(cls, result: HookResult) -> NavResult:
        return cls(False, result.error, result.message)


UNCHANGED = NavResult(False)
MOVED = NavResult(True)


@dataclass(frozen=True, slots=True)
class PlayResult:
    """Outcome of a resolve-and-play attempt chain."""

    played: bool
    track: Track | None = None
    error: ErrorKind | None = None
    message: str = ""
