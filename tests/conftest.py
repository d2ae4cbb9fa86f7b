"""Shared test fixtures for musicfox."""

from __future__ import annotations

import pytest

from musicfox.core.menu import Menu, MenuHooks
from musicfox.core.models import CatalogEntry, PlayMode, QueueSnapshot, Track
from musicfox.core.results import (
    CatalogRequest,
    ErrorKind,
    FetchResult,
    ResolveResult,
)


@pytest.fixture
def tmp_config_dir(tmp_path):
    """Create a temporary config directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


def make_track(track_id: str = "dQw4w9WgXcQ", title: str = "", duration: float = 200.0) -> Track:
    return Track(
        id=track_id,
        title=title or f"Title {track_id}",
        artists=["Rick Astley"],
        duration=duration,
        album="Whenever You Need Somebody",
    )


def make_tracks(*ids: str) -> list[Track]:
    return [make_track(i) for i in ids]


def track_menu(key: str, tracks: list[Track], hooks: MenuHooks | None = None) -> Menu:
    return Menu(
        key=key,
        title=key,
        hooks=hooks or MenuHooks(),
        entries=[CatalogEntry.for_track(t) for t in tracks],
        playable=True,
    )


class FakeEngine:
    """AudioEngine double that records every call."""

    def __init__(self, unsupported: set[str] | None = None, refuse: bool = False) -> None:
        self.calls: list[tuple] = []
        self.unsupported = unsupported or set()
        self.refuse = refuse
        self.on_done = None
        self.on_tick = None

    def play(self, url: str, codec: str, expected_duration: float) -> bool:
        self.calls.append(("play", url))
        return not self.refuse

    def pause(self) -> None:
        self.calls.append(("pause",))

    def resume(self) -> None:
        self.calls.append(("resume",))

    def stop(self) -> None:
        self.calls.append(("stop",))

    def seek(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))

    def supports(self, codec: str) -> bool:
        return codec not in self.unsupported

    def set_listeners(self, on_done, on_tick) -> None:
        self.on_done = on_done
        self.on_tick = on_tick

    @property
    def played_urls(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "play"]


class FakeResolver:
    """Resolves every id to ``https://stream.test/<id>`` unless told otherwise."""

    def __init__(self) -> None:
        self.failing: set[str] = set()
        self.auth_ids: set[str] = set()
        self.codecs: dict[str, str] = {}
        self.requests: list[str] = []
        self.invalidated: list[str] = []

    def resolve(self, track_id: str) -> ResolveResult:
        self.requests.append(track_id)
        if track_id in self.auth_ids:
            return ResolveResult.failed(ErrorKind.AUTH_REQUIRED, "sign in")
        if track_id in self.failing:
            return ResolveResult.failed(ErrorKind.NETWORK, "boom")
        return ResolveResult(url=f"https://stream.test/{track_id}", codec=self.codecs.get(track_id, "opus"))

    def invalidate(self, track_id: str) -> None:
        self.invalidated.append(track_id)


class FakeCatalog:
    """Serves fixed pages per (kind, target); pages are chunks of ``page_size``."""

    def __init__(self, page_size: int = 3) -> None:
        self.page_size = page_size
        self.data: dict[tuple[str, str], list[CatalogEntry]] = {}
        self.errors: dict[tuple[str, str], FetchResult] = {}
        self.requests: list[CatalogRequest] = []

    def add_tracks(self, kind: str, target: str, tracks: list[Track]) -> None:
        self.data[(kind, target)] = [CatalogEntry.for_track(t) for t in tracks]

    def add_entries(self, kind: str, target: str, entries: list[CatalogEntry]) -> None:
        self.data[(kind, target)] = entries

    def fetch(self, request: CatalogRequest) -> FetchResult:
        self.requests.append(request)
        key = (str(request.kind), request.target)
        if key in self.errors:
            return self.errors[key]
        entries = self.data.get(key, [])
        offset = int(request.page_token or 0)
        end = offset + self.page_size
        has_more = end < len(entries)
        return FetchResult(
            entries=entries[offset:end],
            has_more=has_more,
            next_page_token=str(end) if has_more else None,
        )


class FakeStore:
    """In-memory PersistenceHooks."""

    def __init__(self) -> None:
        self.snapshot: QueueSnapshot | None = None
        self.mode: PlayMode | None = None
        self.snapshot_saves = 0

    def save_queue_snapshot(self, snapshot: QueueSnapshot) -> None:
        self.snapshot = snapshot
        self.snapshot_saves += 1

    def load_queue_snapshot(self) -> QueueSnapshot | None:
        return self.snapshot

    def save_play_mode(self, mode: PlayMode) -> None:
        self.mode = mode

    def load_play_mode(self) -> PlayMode | None:
        return self.mode


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sample_tracks() -> list[Track]:
    return make_tracks("vid_01", "vid_02", "vid_03", "vid_04", "vid_05")
