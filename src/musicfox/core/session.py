"""Playback session: play queue, play mode, failure guard and lyric switching.

All methods are meant to be called from the controller's loop. The audio
engine reports back through ``on_done``/``on_tick``, which the controller
posts onto that same loop.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Sequence

from musicfox.core.interfaces import (
    AudioEngine,
    CatalogFetch,
    PersistenceHooks,
    StreamResolving,
)
from musicfox.core.lyrics import LyricTimer, LyricTrack, LyricWindow
from musicfox.core.menu import Menu
from musicfox.core.models import (
    CatalogEntry,
    EntryKind,
    PlayDirection,
    PlaybackState,
    PlayMode,
    PlayQueue,
    QueueSnapshot,
    Track,
)
from musicfox.core.navigator import MenuNavigator
from musicfox.core.results import (
    CatalogRequest,
    ErrorKind,
    PlayResult,
    RequestKind,
    ResolveResult,
)

logger = logging.getLogger(__name__)

CURRENT_QUEUE_KEY = "current_queue"
INTELLIGENT_KEY = "intelligent"

# Number of leading track ids compared when deciding whether two queues match.
QUEUE_PROBE = 10

_MODE_CYCLE: dict[PlayMode, PlayMode] = {
    PlayMode.LIST_LOOP: PlayMode.ORDER,
    PlayMode.ORDER: PlayMode.SINGLE_LOOP,
    PlayMode.SINGLE_LOOP: PlayMode.RANDOM,
    PlayMode.RANDOM: PlayMode.LIST_LOOP,
    PlayMode.INTELLIGENT: PlayMode.LIST_LOOP,
}

LyricScheduler = Callable[[Track, int], None]
ErrorCallback = Callable[[ErrorKind, str, "Callable[[], object] | None"], None]


def same_queue(a: Sequence[Track], b: Sequence[Track], probe: int = QUEUE_PROBE) -> bool:
    """Cheap queue equality: same length and the same leading track ids."""
    if len(a) != len(b):
        return False
    return all(x.id == y.id for x, y in zip(a[:probe], b[:probe]))


class PlaybackSession:
    """Owns the play queue and drives the audio engine through it."""

    def __init__(
        self,
        engine: AudioEngine,
        resolver: StreamResolving,
        navigator: MenuNavigator | None = None,
        catalog: CatalogFetch | None = None,
        persistence: PersistenceHooks | None = None,
        lyric_scheduler: LyricScheduler | None = None,
        on_change: Callable[[], None] | None = None,
        on_error: ErrorCallback | None = None,
        failure_threshold: int = 3,
        stuck_tolerance: float = 10.0,
        lyric_lines: int = 5,
        lyric_offset: float = 0.0,
        rng: random.Random | None = None,
    ) -> None:
        self._engine = engine
        self._resolver = resolver
        self._navigator = navigator
        self._catalog = catalog
        self._persistence = persistence
        self._lyric_scheduler = lyric_scheduler
        self._on_change = on_change
        self._on_error = on_error
        self._threshold = failure_threshold
        self._stuck_tolerance = stuck_tolerance
        self._lyric_lines = lyric_lines
        self._lyric_offset = lyric_offset
        self._random = rng or random.Random()

        self._queue = PlayQueue()
        self._origin_menu: Menu | None = None
        self._mode = PlayMode.LIST_LOOP
        self._state = PlaybackState.IDLE
        self._failures = 0
        self._elapsed = 0.0
        self._stuck_fired = False

        self._lyric_timer: LyricTimer | None = None
        self._lyric_generation = 0

    # -- Properties -------------------------------------------------------

    @property
    def queue(self) -> PlayQueue:
        return self._queue

    @property
    def mode(self) -> PlayMode:
        return self._mode

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def current_track(self) -> Track | None:
        return self._queue.current

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def lyric_generation(self) -> int:
        return self._lyric_generation

    @property
    def lyric_timer(self) -> LyricTimer | None:
        return self._lyric_timer

    @property
    def lyric_window(self) -> LyricWindow | None:
        if self._lyric_timer is None:
            return None
        return self._lyric_timer.last_window

    @property
    def lyric_lines(self) -> int:
        return self._lyric_lines

    @lyric_lines.setter
    def lyric_lines(self, value: int) -> None:
        self._lyric_lines = value
        if self._lyric_timer is not None:
            self._lyric_timer.window_size = value

    def attach_navigator(self, navigator: MenuNavigator) -> None:
        self._navigator = navigator

    def bind(
        self,
        on_change: Callable[[], None] | None = None,
        on_error: ErrorCallback | None = None,
        lyric_scheduler: LyricScheduler | None = None,
    ) -> None:
        """Install callbacks owned by whoever drives the session."""
        if on_change is not None:
            self._on_change = on_change
        if on_error is not None:
            self._on_error = on_error
        if lyric_scheduler is not None:
            self._lyric_scheduler = lyric_scheduler

    # -- Internal helpers -------------------------------------------------

    def _set_state(self, state: PlaybackState) -> None:
        if state is not self._state:
            logger.debug("Playback state %s -> %s", self._state, state)
            self._state = state
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def _report(
        self, kind: ErrorKind, message: str, retry: Callable[[], object] | None = None
    ) -> None:
        if self._on_error is not None:
            self._on_error(kind, message, retry)

    def _save_snapshot(self) -> None:
        if self._persistence is None or not self._queue.tracks:
            return
        self._persistence.save_queue_snapshot(
            QueueSnapshot(
                tracks=tuple(self._queue.tracks),
                current_index=self._queue.current_index,
                origin_key=self._queue.origin_key,
            )
        )

    # -- Queue ------------------------------------------------------------

    def enqueue(
        self,
        tracks: Sequence[Track],
        origin_key: str,
        start_index: int = 0,
        origin_menu: Menu | None = None,
    ) -> bool:
        """Make *tracks* the play queue. Returns False if the queue was kept.

        A queue judged the same as the current one is kept as-is so tracks
        already resolved or appended by paging are not thrown away.
        """
        start_index = max(0, min(start_index, len(tracks) - 1)) if tracks else 0
        replaced = not same_queue(tracks, self._queue.tracks)
        if replaced:
            self._queue = PlayQueue(list(tracks), start_index, origin_key)
            logger.debug("New queue from %s (%d tracks)", origin_key, len(tracks))
            self._sync_queue_menu()
        else:
            self._queue.current_index = start_index
            self._queue.origin_key = origin_key
        self._origin_menu = origin_menu
        return replaced

    def in_playing_menu(self) -> bool:
        """Whether the navigator shows the menu the queue came from."""
        if self._navigator is None:
            return False
        key = self._navigator.current_key
        if key == CURRENT_QUEUE_KEY:
            return True
        return bool(self._queue.origin_key) and key == self._queue.origin_key

    def _origin_source(self) -> Menu | None:
        nav = self._navigator
        if nav is not None and self._queue.origin_key and nav.current_key == self._queue.origin_key:
            return nav.menu
        return self._origin_menu

    def _absorb_origin_growth(self) -> None:
        """Append tracks the origin menu gained by paging, leaving the index alone."""
        menu = self._origin_source()
        if menu is None:
            return
        tracks = menu.tracks()
        count = len(self._queue)
        if len(tracks) <= count or not same_queue(tracks[:count], self._queue.tracks):
            return
        self._queue.tracks.extend(tracks[count:])
        logger.debug("Queue grew by %d tracks from %s", len(tracks) - count, menu.key)

    def _nudge_navigator(self, forward: bool) -> None:
        """Keep on-screen paging in step with a queue about to run out."""
        nav = self._navigator
        if nav is None:
            return
        on_screen = bool(self._queue.origin_key) and nav.current_key == self._queue.origin_key
        if on_screen:
            cursor_at_edge = nav.cursor >= len(nav.items) - 1 if forward else nav.cursor <= 0
            if cursor_at_edge:
                # Moving past the edge fires the hook and follows the new rows.
                if forward:
                    if nav.dual_column and nav.cursor % 2 == 0:
                        nav.move_right()
                    else:
                        nav.move_down()
                else:
                    nav.move_up()
                return
        menu = nav.menu if on_screen else self._origin_menu
        if menu is None:
            return
        nav.run_hook(menu.hooks.bottom_out if forward else menu.hooks.top_out, menu)
        if on_screen:
            nav.refresh()

    def _sync_queue_menu(self) -> bool:
        """Rebuild the displayed queue menu if it no longer matches the queue.

        Returns True when the rows were rebuilt.
        """
        nav = self._navigator
        if nav is None or nav.current_key != CURRENT_QUEUE_KEY:
            return False
        menu = nav.menu
        if [t.id for t in menu.tracks()] == self._queue.track_ids:
            return False
        menu.entries = [CatalogEntry.for_track(t) for t in self._queue.tracks]
        nav.refresh()
        logger.debug("Queue menu rebuilt (%d tracks)", len(menu.entries))
        return True

    def _grow_intelligent(self) -> None:
        seed = self._queue.current
        if self._catalog is None or seed is None:
            return
        result = self._catalog.fetch(CatalogRequest(RequestKind.SIMILAR, seed.id))
        if not result.ok:
            logger.warning("Could not extend intelligent queue: %s", result.message)
            return
        known = set(self._queue.track_ids)
        fresh = [t for t in result.tracks if t.id not in known]
        self._queue.tracks.extend(fresh)
        logger.debug("Intelligent queue grew by %d tracks", len(fresh))

    def advance(self, direction: PlayDirection = PlayDirection.NEXT, manual: bool = False) -> bool:
        """Move ``current_index`` according to the play mode.

        Returns False when the index cannot move (empty queue, or Order mode
        at either end). ``manual`` lets next/previous step through the queue
        under Single Loop instead of replaying.
        """
        queue = self._queue
        if not queue.tracks:
            return False

        forward = direction is PlayDirection.NEXT
        index = queue.current_index
        at_edge = index >= len(queue) - 1 if forward else index <= 0
        if at_edge:
            if forward and self._mode is PlayMode.INTELLIGENT:
                self._grow_intelligent()
            self._nudge_navigator(forward)
            self._absorb_origin_growth()
            self._sync_queue_menu()

        count = len(queue)
        step = 1 if forward else -1
        match self._mode:
            case PlayMode.LIST_LOOP | PlayMode.INTELLIGENT:
                index = (index + step) % count
            case PlayMode.ORDER:
                if not 0 <= index + step < count:
                    return False
                index += step
            case PlayMode.SINGLE_LOOP:
                if manual:
                    if not 0 <= index + step < count:
                        return False
                    index += step
            case PlayMode.RANDOM:
                index = self._random.randrange(count)

        queue.current_index = index
        return True

    # -- Transport --------------------------------------------------------

    def _play_current(self, direction: PlayDirection) -> PlayResult:
        """Resolve and start the current track, auto-advancing past failures.

        Every failed resolve or start counts toward the failure threshold and
        triggers exactly one advance in *direction* before the next attempt.
        """
        while True:
            track = self._queue.current
            if track is None:
                self._set_state(PlaybackState.IDLE)
                return PlayResult(False)

            self._save_snapshot()
            self._set_state(PlaybackState.RESOLVING)
            result = self._resolver.resolve(track.id)

            if result.error is ErrorKind.AUTH_REQUIRED:
                self._set_state(PlaybackState.STOPPED)
                self._report(ErrorKind.AUTH_REQUIRED, result.message, self.play)
                return PlayResult(False, track, result.error, result.message)

            if result.ok and not self._engine.supports(result.codec):
                result = ResolveResult.failed(
                    ErrorKind.UNSUPPORTED_MEDIA, f"unsupported codec {result.codec!r}"
                )

            if result.ok:
                track.resolved_url = result.url
                track.codec = result.codec
                if self._engine.play(result.url, result.codec, track.duration):
                    self._started(track)
                    return PlayResult(True, track)
                # A cached URL may have expired; resolve afresh next time.
                self._resolver.invalidate(track.id)
                result = ResolveResult.failed(ErrorKind.NETWORK, "audio engine refused stream")

            self._failures += 1
            logger.warning(
                "Cannot play %s (%s, attempt %d): %s",
                track.id,
                result.error,
                self._failures,
                result.message,
            )
            if self._failures >= self._threshold:
                self._set_state(PlaybackState.FAILED)
                message = f"gave up after {self._failures} failed tracks"
                self._report(ErrorKind.EXHAUSTED_RETRIES, message)
                return PlayResult(False, track, ErrorKind.EXHAUSTED_RETRIES, message)

            if not self.advance(direction):
                self._set_state(PlaybackState.STOPPED)
                return PlayResult(False, track, result.error, result.message)

    def _started(self, track: Track) -> None:
        self._failures = 0
        self._elapsed = 0.0
        self._stuck_fired = False
        logger.info("Playing %s - %s", track.artist_name, track.title)
        self._switch_lyrics(track)
        self._set_state(PlaybackState.PLAYING)

    def play(self) -> PlayResult:
        """Play the queue's current track."""
        if not self._queue.tracks:
            return PlayResult(False)
        return self._play_current(PlayDirection.NEXT)

    def play_from_menu(self, menu: Menu, index: int) -> PlayResult:
        """Start playback of entry *index* of a playable *menu*.

        Selecting the track that is already playing toggles pause instead.
        """
        if not 0 <= index < len(menu.entries) or menu.entries[index].kind is not EntryKind.TRACK:
            return PlayResult(False)

        if menu.key == CURRENT_QUEUE_KEY:
            if [t.id for t in menu.tracks()] != self._queue.track_ids:
                # Rows went stale after the queue was replaced; show the new ones first.
                self._sync_queue_menu()
                return PlayResult(False, message="Queue changed, selection refreshed")
            self._queue.current_index = index
            return self.play()

        tracks = menu.tracks()
        track_index = sum(1 for e in menu.entries[:index] if e.kind is EntryKind.TRACK)
        if (
            self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED)
            and self._queue.origin_key == menu.key
            and self._queue.current_index == track_index
            and same_queue(tracks, self._queue.tracks)
        ):
            self.toggle_pause()
            return PlayResult(True, self._queue.current)

        if self._mode is PlayMode.INTELLIGENT:
            self.set_mode(PlayMode.LIST_LOOP)
        self.enqueue(tracks, menu.key, track_index, menu)
        return self.play()

    def next_track(self) -> PlayResult:
        if not self.advance(PlayDirection.NEXT, manual=True):
            return PlayResult(False, self._queue.current)
        return self._play_current(PlayDirection.NEXT)

    def previous_track(self) -> PlayResult:
        if not self.advance(PlayDirection.PREV, manual=True):
            return PlayResult(False, self._queue.current)
        return self._play_current(PlayDirection.PREV)

    def pause(self) -> None:
        if self._state is PlaybackState.PLAYING:
            self._engine.pause()
            self._set_state(PlaybackState.PAUSED)

    def resume(self) -> None:
        if self._state is PlaybackState.PAUSED:
            self._engine.resume()
            self._set_state(PlaybackState.PLAYING)

    def toggle_pause(self) -> None:
        if self._state is PlaybackState.PLAYING:
            self.pause()
        elif self._state is PlaybackState.PAUSED:
            self.resume()
        elif self._queue.tracks:
            self.play()

    def seek(self, seconds: float) -> None:
        if self._state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            return
        seconds = max(0.0, seconds)
        self._engine.seek(seconds)
        self._elapsed = seconds
        if self._lyric_timer is not None:
            self._lyric_timer.rewind()
        self._changed()

    def stop(self) -> None:
        self._engine.stop()
        if self._lyric_timer is not None:
            self._lyric_timer.stop()
        self._set_state(PlaybackState.STOPPED)

    def close(self) -> None:
        self._save_snapshot()
        self.stop()

    # -- Modes ------------------------------------------------------------

    def set_mode(self, mode: PlayMode | str = "") -> PlayMode:
        """Set the play mode, or cycle to the next one when *mode* is empty."""
        self._mode = _MODE_CYCLE[self._mode] if not mode else PlayMode(mode)
        if self._persistence is not None:
            self._persistence.save_play_mode(self._mode)
        self._changed()
        return self._mode

    def start_intelligent(self) -> PlayResult:
        """Queue the selected (or playing) track followed by similar tracks."""
        seed: Track | None = None
        nav = self._navigator
        if nav is not None and nav.menu.playable:
            entry = nav.selected_entry
            seed = entry.track if entry is not None else None
        if seed is None:
            seed = self._queue.current
        if seed is None or self._catalog is None:
            return PlayResult(False)

        result = self._catalog.fetch(CatalogRequest(RequestKind.SIMILAR, seed.id))
        if not result.ok:
            retry = self.start_intelligent if result.error is ErrorKind.AUTH_REQUIRED else None
            self._report(result.error or ErrorKind.NETWORK, result.message, retry)
            return PlayResult(False, seed, result.error, result.message)

        similar = [t for t in result.tracks if t.id != seed.id]
        self._queue = PlayQueue([seed, *similar], 0, INTELLIGENT_KEY)
        self._origin_menu = None
        self._mode = PlayMode.INTELLIGENT
        self._sync_queue_menu()
        return self.play()

    # -- Engine notifications ---------------------------------------------

    def on_done(self) -> None:
        """The engine finished the current stream: advance exactly once."""
        if self._state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            return
        if self._lyric_timer is not None:
            self._lyric_timer.stop()
        self._set_state(PlaybackState.STOPPED)
        if not self.advance(PlayDirection.NEXT):
            self._set_state(PlaybackState.IDLE)
            return
        self._play_current(PlayDirection.NEXT)

    def on_tick(self, elapsed: float) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        self._elapsed = elapsed
        if self._lyric_timer is not None:
            self._lyric_timer.on_tick(elapsed)

        track = self._queue.current
        if (
            track is not None
            and track.duration > 0
            and elapsed > track.duration + self._stuck_tolerance
            and not self._stuck_fired
        ):
            self._stuck_fired = True
            logger.warning("Stream for %s is stuck at %.1fs, skipping", track.id, elapsed)
            self.on_done()

    # -- Lyrics -----------------------------------------------------------

    def _switch_lyrics(self, track: Track) -> None:
        if self._lyric_timer is not None:
            self._lyric_timer.stop()
        self._lyric_generation += 1
        self._lyric_timer = LyricTimer(
            LyricTrack.placeholder(), self._lyric_lines, self._lyric_offset
        )
        self._lyric_timer.start()
        if self._lyric_scheduler is not None:
            self._lyric_scheduler(track, self._lyric_generation)

    def apply_lyrics(self, generation: int, track_id: str, payload: str | None) -> bool:
        """Install fetched lyrics unless the track changed since the fetch began."""
        current = self._queue.current
        if generation != self._lyric_generation or current is None or current.id != track_id:
            logger.debug("Discarding stale lyrics for %s", track_id)
            return False
        if self._lyric_timer is not None:
            self._lyric_timer.stop()
        self._lyric_timer = LyricTimer(
            LyricTrack.from_payload(payload), self._lyric_lines, self._lyric_offset
        )
        self._lyric_timer.start()
        if self._state is PlaybackState.PLAYING:
            self._lyric_timer.on_tick(self._elapsed)
        self._changed()
        return True

    # -- Cursor sync and resume -------------------------------------------

    def locate_cursor_to_playback(self) -> bool:
        """Move the navigator cursor onto the playing track, if it is on screen."""
        nav = self._navigator
        if nav is None or not self._queue.tracks or not nav.menu.playable:
            return False
        if not self.in_playing_menu() or not same_queue(nav.menu.tracks(), self._queue.tracks):
            return False
        index = self._queue.current_index
        nav.select(index)
        return nav.cursor == index

    def restore(self) -> bool:
        """Load the saved play mode and queue. Nothing starts playing."""
        if self._persistence is None:
            return False
        mode = self._persistence.load_play_mode()
        if mode is not None:
            self._mode = mode
        snapshot = self._persistence.load_queue_snapshot()
        if snapshot is None or not snapshot.tracks:
            return False
        self._queue = PlayQueue(
            list(snapshot.tracks), snapshot.current_index, snapshot.origin_key
        )
        self._origin_menu = None
        logger.debug("Restored queue of %d tracks", len(snapshot.tracks))
        self._changed()
        return True
