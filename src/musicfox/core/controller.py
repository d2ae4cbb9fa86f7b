"""Session controller: the single loop every state change goes through.

Keys, audio-engine notifications and finished lyric fetches all arrive as
events posted onto one asyncio queue and are handled one at a time, so the
navigator and the playback session are only ever touched from the loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from musicfox.config.keymap import Action, KeyMap, MatchResult
from musicfox.core.catalog_menus import queue_menu
from musicfox.core.interfaces import AudioEngine, LyricFetch
from musicfox.core.lyrics import window_size_for_rows
from musicfox.core.models import EntryKind, Track
from musicfox.core.navigator import MenuNavigator
from musicfox.core.results import ErrorKind, NavResult, PlayResult
from musicfox.core.session import CURRENT_QUEUE_KEY, PlaybackSession

logger = logging.getLogger(__name__)

# Safety cap on vim-style count prefixes.
_MAX_KEY_COUNT = 100

Retry = Callable[[], object]


@dataclass(frozen=True, slots=True)
class KeyPressed:
    key: str


@dataclass(frozen=True, slots=True)
class TrackFinished:
    pass


@dataclass(frozen=True, slots=True)
class PositionTick:
    elapsed: float


@dataclass(frozen=True, slots=True)
class LyricsLoaded:
    generation: int
    track_id: str
    payload: str | None


@dataclass(frozen=True, slots=True)
class Resized:
    width: int
    height: int


@dataclass(frozen=True, slots=True)
class LoginCompleted:
    pass


@dataclass(frozen=True, slots=True)
class ActionRequested:
    """An action issued by something other than the keyboard (CLI, scripts)."""

    action: Action
    count: int = 1


@dataclass(frozen=True, slots=True)
class Quit:
    pass


Event = (
    KeyPressed
    | ActionRequested
    | TrackFinished
    | PositionTick
    | LyricsLoaded
    | Resized
    | LoginCompleted
    | Quit
)


class SessionController:
    """Dispatches events to the navigator and the playback session.

    ``post()`` may be called from any thread. ``dispatch()`` is the
    synchronous handler the loop runs for each event; tests can call it
    directly.
    """

    def __init__(
        self,
        navigator: MenuNavigator,
        session: PlaybackSession,
        keymap: KeyMap | None = None,
        request_rerender: Callable[[], None] | None = None,
        lyric_fetch: LyricFetch | None = None,
        seek_step: int = 5,
    ) -> None:
        self.navigator = navigator
        self.session = session
        self.keymap = keymap or KeyMap.defaults()
        self._request_rerender = request_rerender
        self._lyric_fetch = lyric_fetch
        self._seek_step = seek_step

        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue[Event] | None = None
        self._pending: deque[Event] = deque()
        self._running = False
        self._lyric_tasks: set[asyncio.Task[None]] = set()

        self._key_buffer: list[str] = []
        self._count_buffer: str = ""

        self._loading = False
        self._auth_required = False
        self._pending_retry: Retry | None = None
        self.last_error: tuple[ErrorKind, str] | None = None

        navigator.on_loading = self._set_loading
        session.attach_navigator(navigator)
        session.bind(
            on_change=self.rerender,
            on_error=self.handle_error,
            lyric_scheduler=self.schedule_lyrics if lyric_fetch is not None else None,
        )

    # -- Properties -------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def auth_required(self) -> bool:
        return self._auth_required

    # -- Event loop -------------------------------------------------------

    def post(self, event: Event) -> None:
        """Queue *event* for the loop. Safe to call from any thread."""
        if self._loop is None or self._events is None:
            self._pending.append(event)
            return
        self._loop.call_soon_threadsafe(self._events.put_nowait, event)

    def attach_engine(self, engine: AudioEngine) -> None:
        """Route engine notifications onto the loop as events."""
        engine.set_listeners(
            on_done=lambda: self.post(TrackFinished()),
            on_tick=lambda elapsed: self.post(PositionTick(elapsed)),
        )

    async def run(self) -> None:
        """Process events until Quit."""
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        while self._pending:
            self._events.put_nowait(self._pending.popleft())
        self._running = True
        self.rerender()
        try:
            while self._running:
                event = await self._events.get()
                self.dispatch(event)
        finally:
            self._running = False
            for task in list(self._lyric_tasks):
                task.cancel()
            self.session.close()
            self._loop = None
            self._events = None

    def dispatch(self, event: Event) -> None:
        match event:
            case KeyPressed(key=key):
                self._on_key(key)
            case ActionRequested(action=action, count=count):
                self.handle_action(action, count)
            case TrackFinished():
                self.session.on_done()
            case PositionTick(elapsed=elapsed):
                self.session.on_tick(elapsed)
            case LyricsLoaded(generation=generation, track_id=track_id, payload=payload):
                self.session.apply_lyrics(generation, track_id, payload)
            case Resized(width=width, height=height):
                self.navigator.resize(width, height)
                self.session.lyric_lines = window_size_for_rows(self.navigator.lyric_rows)
            case LoginCompleted():
                self._login_completed()
            case Quit():
                self._running = False
        self.rerender()

    def rerender(self) -> None:
        if self._request_rerender is not None:
            self._request_rerender()

    def _set_loading(self, loading: bool) -> None:
        self._loading = loading
        self.rerender()

    # -- Errors and login -------------------------------------------------

    def handle_error(self, kind: ErrorKind, message: str, retry: Retry | None = None) -> None:
        self.last_error = (kind, message)
        if kind is ErrorKind.AUTH_REQUIRED:
            logger.info("Login required: %s", message)
            self._auth_required = True
            self._pending_retry = retry
        else:
            logger.warning("%s: %s", kind, message)
        self.rerender()

    def _login_completed(self) -> None:
        self._auth_required = False
        self.last_error = None
        retry, self._pending_retry = self._pending_retry, None
        if retry is not None:
            logger.debug("Replaying operation interrupted by login")
            retry()

    def _check(self, result: NavResult, retry: Retry | None = None) -> bool:
        if result.error is not None:
            self.handle_error(result.error, result.message, retry)
        return result.moved

    def _check_play(self, result: PlayResult) -> None:
        # Session errors already went through handle_error.
        if not result.played and result.error is None:
            logger.debug("Nothing to play")

    # -- Lyrics -----------------------------------------------------------

    def schedule_lyrics(self, track: Track, generation: int) -> None:
        """Fetch lyrics off-loop; the result comes back as a LyricsLoaded event."""
        if self._lyric_fetch is None:
            return
        try:
            loop = self._loop or asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, skipping lyric fetch for %s", track.id)
            return
        task = loop.create_task(self._fetch_lyrics(self._lyric_fetch, track, generation))
        self._lyric_tasks.add(task)
        task.add_done_callback(self._lyric_tasks.discard)

    async def _fetch_lyrics(self, fetch: LyricFetch, track: Track, generation: int) -> None:
        try:
            payload = await asyncio.to_thread(fetch, track)
        except Exception:
            logger.debug("Lyric fetch failed for %s", track.id, exc_info=True)
            payload = None
        self.post(LyricsLoaded(generation, track.id, payload))

    # -- Key handling -----------------------------------------------------

    def _on_key(self, key: str) -> None:
        """Match *key* against the keymap, with count prefix and sequences."""
        if self.navigator.busy:
            logger.debug("Dropping key %r while a hook is running", key)
            self._key_buffer.clear()
            self._count_buffer = ""
            return

        if key.isdigit() and not self._key_buffer:
            self._count_buffer += key
            return

        self._key_buffer.append(key)
        result, action = self.keymap.match(tuple(self._key_buffer))

        if result == MatchResult.PENDING:
            return

        count = int(self._count_buffer) if self._count_buffer else 1
        count = min(count, _MAX_KEY_COUNT)
        self._key_buffer.clear()
        self._count_buffer = ""
        if result == MatchResult.EXACT and action is not None:
            self.handle_action(action, count)

    def handle_action(self, action: Action, count: int = 1) -> None:
        nav = self.navigator
        session = self.session

        if self._auth_required and action not in (Action.GO_BACK, Action.QUIT):
            # The login prompt blocks everything else.
            return

        match action:
            # -- Playback --
            case Action.PLAY_PAUSE:
                session.toggle_pause()
            case Action.NEXT_TRACK:
                self._check_play(session.next_track())
            case Action.PREVIOUS_TRACK:
                self._check_play(session.previous_track())
            case Action.CYCLE_MODE:
                session.set_mode("")
            case Action.INTELLIGENT:
                self._check_play(session.start_intelligent())
            case Action.SEEK_FORWARD:
                session.seek(session.elapsed + self._seek_step * count)
            case Action.SEEK_BACKWARD:
                session.seek(session.elapsed - self._seek_step * count)
            case Action.STOP:
                session.stop()

            # -- Navigation --
            case Action.MOVE_DOWN:
                self._repeat(nav.move_down, count, action)
            case Action.MOVE_UP:
                self._repeat(nav.move_up, count, action)
            case Action.MOVE_LEFT:
                self._repeat(nav.move_left, count, action)
            case Action.MOVE_RIGHT:
                self._repeat(nav.move_right, count, action)
            case Action.PAGE_DOWN:
                self._repeat(nav.page_down, count, action)
            case Action.PAGE_UP:
                self._repeat(nav.page_up, count, action)
            case Action.GO_TOP:
                self._check(nav.move_top())
            case Action.GO_BOTTOM:
                self._check(nav.move_bottom())
            case Action.SELECT:
                self._select()
            case Action.GO_BACK:
                self._go_back()

            # -- Pages --
            case Action.JUMP_TO_CURRENT:
                session.locate_cursor_to_playback()
            case Action.QUEUE:
                if nav.current_key != CURRENT_QUEUE_KEY:
                    self._check(nav.enter(child=queue_menu(session)))
            case Action.RERENDER:
                pass
            case Action.QUIT:
                self._running = False

    def _repeat(self, move: Callable[[], NavResult], count: int, action: Action) -> None:
        for _ in range(count):
            if not self._check(move(), retry=lambda: self.handle_action(action)):
                break

    def _select(self) -> None:
        nav = self.navigator
        entry = nav.selected_entry
        if entry is None:
            return
        if nav.menu.playable and entry.kind is EntryKind.TRACK:
            self._check_play(self.session.play_from_menu(nav.menu, nav.cursor))
            return
        if self._check(nav.enter(), retry=self._select) and self.session.in_playing_menu():
            self.session.locate_cursor_to_playback()

    def _go_back(self) -> None:
        if self._auth_required:
            # Dismiss the login prompt and drop the interrupted operation.
            self._auth_required = False
            self._pending_retry = None
            return
        self._check(self.navigator.back())
