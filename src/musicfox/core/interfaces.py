"""Collaborators the session core talks to, expressed as protocols."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from musicfox.core.models import PlayMode, QueueSnapshot, Track
from musicfox.core.results import CatalogRequest, FetchResult, ResolveResult


@runtime_checkable
class CatalogFetch(Protocol):
    def fetch(self, request: CatalogRequest) -> FetchResult: ...


@runtime_checkable
class StreamResolving(Protocol):
    def resolve(self, track_id: str) -> ResolveResult: ...

    def invalidate(self, track_id: str) -> None:
        """Forget any cached stream for *track_id*."""


@runtime_checkable
class AudioEngine(Protocol):
    """A single local audio output.

    ``on_done`` and ``on_tick(elapsed)`` may be called from any thread;
    receivers must marshal them onto their own loop.
    """

    def play(self, url: str, codec: str, expected_duration: float) -> bool: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...

    def stop(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def supports(self, codec: str) -> bool: ...

    def set_listeners(
        self,
        on_done: Callable[[], None] | None,
        on_tick: Callable[[float], None] | None,
    ) -> None: ...


LyricFetch = Callable[[Track], "str | None"]


@runtime_checkable
class PersistenceHooks(Protocol):
    def save_queue_snapshot(self, snapshot: QueueSnapshot) -> None: ...

    def load_queue_snapshot(self) -> QueueSnapshot | None: ...

    def save_play_mode(self, mode: PlayMode) -> None: ...

    def load_play_mode(self) -> PlayMode | None: ...
