"""Tests for PlaybackSession: queue advancement, failure guard, lyrics and resume."""

import random

import pytest
from conftest import FakeEngine, make_track, make_tracks, track_menu

from musicfox.core.catalog_menus import queue_menu
from musicfox.core.menu import MenuHooks
from musicfox.core.models import (
    CatalogEntry,
    PlayDirection,
    PlaybackState,
    PlayMode,
    QueueSnapshot,
)
from musicfox.core.navigator import MenuNavigator
from musicfox.core.results import PROCEED, ErrorKind, FetchResult
from musicfox.core.session import (
    CURRENT_QUEUE_KEY,
    INTELLIGENT_KEY,
    PlaybackSession,
    same_queue,
)


@pytest.fixture
def session(engine, resolver, catalog, store):
    return PlaybackSession(engine, resolver, catalog=catalog, persistence=store)


def _ids(session: PlaybackSession) -> list[str]:
    return session.queue.track_ids


class TestSameQueue:
    def test_reflexive(self):
        tracks = make_tracks("a", "b", "c")
        assert same_queue(tracks, tracks)

    def test_length_differs(self):
        assert not same_queue(make_tracks("a", "b"), make_tracks("a", "b", "c"))

    def test_only_probe_is_compared(self):
        a = make_tracks(*(f"v{i}" for i in range(12)))
        b = make_tracks(*(f"v{i}" for i in range(10)), "x", "y")
        assert same_queue(a, b)
        assert not same_queue(a, b, probe=12)


class TestEnqueue:
    def test_new_queue_replaces(self, session):
        assert session.enqueue(make_tracks("A", "B", "C"), "pl1", 1)
        assert _ids(session) == ["A", "B", "C"]
        assert session.queue.current_index == 1
        assert session.queue.origin_key == "pl1"

    def test_same_queue_kept(self, session):
        tracks = make_tracks("A", "B", "C")
        session.enqueue(tracks, "pl1")
        kept = session.queue
        assert not session.enqueue(make_tracks("A", "B", "C"), "pl1", 2)
        assert session.queue is kept
        assert session.queue.current_index == 2

    def test_start_index_clamped(self, session):
        session.enqueue(make_tracks("A", "B"), "pl1", 9)
        assert session.queue.current_index == 1


class TestAdvance:
    def test_order_stops_at_end(self, session):
        session.set_mode(PlayMode.ORDER)
        session.enqueue(make_tracks("A", "B", "C"), "pl1", 0)
        assert session.advance()
        assert session.advance()
        assert session.queue.current_index == 2
        assert not session.advance()
        assert session.queue.current_index == 2

    def test_list_loop_wraps(self, session):
        session.enqueue(make_tracks("A", "B", "C"), "pl1", 0)
        session.advance()
        session.advance()
        assert session.queue.current.id == "C"
        session.advance()
        assert session.queue.current_index == 0

    def test_list_loop_wraps_backwards(self, session):
        session.enqueue(make_tracks("A", "B", "C"), "pl1", 0)
        session.advance(PlayDirection.PREV)
        assert session.queue.current_index == 2

    def test_order_prev_at_start(self, session):
        session.set_mode(PlayMode.ORDER)
        session.enqueue(make_tracks("A", "B"), "pl1", 0)
        assert not session.advance(PlayDirection.PREV)

    def test_random_in_range(self, engine, resolver):
        session = PlaybackSession(engine, resolver, rng=random.Random(7))
        session.set_mode(PlayMode.RANDOM)
        session.enqueue(make_tracks("A", "B", "C", "D"), "pl1")
        for _ in range(50):
            assert session.advance()
            assert 0 <= session.queue.current_index < 4

    def test_single_loop_repeats_unless_manual(self, session):
        session.set_mode(PlayMode.SINGLE_LOOP)
        session.enqueue(make_tracks("A", "B", "C"), "pl1", 1)
        assert session.advance()
        assert session.queue.current_index == 1
        assert session.advance(manual=True)
        assert session.queue.current_index == 2

    def test_empty_queue(self, session):
        assert not session.advance()


class TestModes:
    def test_cycle(self, session, store):
        seen = [session.set_mode("") for _ in range(4)]
        assert seen == [PlayMode.ORDER, PlayMode.SINGLE_LOOP, PlayMode.RANDOM, PlayMode.LIST_LOOP]
        assert store.mode is PlayMode.LIST_LOOP

    def test_intelligent_cycles_to_list_loop(self, session):
        session.set_mode(PlayMode.INTELLIGENT)
        assert session.set_mode("") is PlayMode.LIST_LOOP

    def test_explicit_string(self, session, store):
        session.set_mode("random")
        assert session.mode is PlayMode.RANDOM
        assert store.mode is PlayMode.RANDOM


class TestPlay:
    def test_play_resolves_and_starts(self, session, engine):
        session.enqueue(make_tracks("A", "B"), "pl1")
        result = session.play()
        assert result.played
        assert session.state is PlaybackState.PLAYING
        assert engine.played_urls == ["https://stream.test/A"]
        assert session.current_track.resolved_url == "https://stream.test/A"

    def test_play_empty_queue(self, session, engine):
        assert not session.play().played
        assert engine.played_urls == []

    def test_next_and_previous(self, session, engine):
        session.enqueue(make_tracks("A", "B", "C"), "pl1")
        session.play()
        session.next_track()
        session.previous_track()
        assert engine.played_urls == [
            "https://stream.test/A",
            "https://stream.test/B",
            "https://stream.test/A",
        ]

    def test_next_at_end_under_order(self, session, engine):
        session.set_mode(PlayMode.ORDER)
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        assert not session.next_track().played
        assert engine.played_urls == ["https://stream.test/A"]

    def test_pause_resume(self, session, engine):
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        session.toggle_pause()
        assert session.state is PlaybackState.PAUSED
        session.toggle_pause()
        assert session.state is PlaybackState.PLAYING
        assert ("pause",) in engine.calls
        assert ("resume",) in engine.calls

    def test_seek(self, session, engine):
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        session.seek(30)
        session.seek(-5)
        assert ("seek", 30) in engine.calls
        assert ("seek", 0.0) in engine.calls
        assert session.elapsed == 0.0

    def test_seek_ignored_when_idle(self, session, engine):
        session.seek(30)
        assert engine.calls == []

    def test_stop(self, session, engine):
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        session.stop()
        assert session.state is PlaybackState.STOPPED
        assert ("stop",) in engine.calls

    def test_state_changes_notify(self, engine, resolver):
        changes = []
        session = PlaybackSession(engine, resolver, on_change=lambda: changes.append(1))
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        assert changes


class TestFailureGuard:
    def test_threshold_after_three_failures(self, session, resolver):
        errors = []
        session.bind(on_error=lambda kind, msg, retry: errors.append(kind))
        resolver.failing = {"A", "B", "C"}
        session.enqueue(make_tracks("A", "B", "C", "D"), "pl1")

        result = session.play()
        assert not result.played
        assert result.error is ErrorKind.EXHAUSTED_RETRIES
        assert session.state is PlaybackState.FAILED
        assert session.failures == 3
        assert resolver.requests == ["A", "B", "C"]
        assert errors == [ErrorKind.EXHAUSTED_RETRIES]

    def test_one_advance_per_failure(self, session, resolver, engine):
        resolver.failing = {"A", "B"}
        session.enqueue(make_tracks("A", "B", "C", "D"), "pl1")
        session.play()
        assert resolver.requests == ["A", "B", "C"]
        assert session.queue.current_index == 2
        assert engine.played_urls == ["https://stream.test/C"]

    def test_success_resets_counter(self, session, resolver):
        resolver.failing = {"A"}
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.play()
        assert session.failures == 0
        assert session.state is PlaybackState.PLAYING

    def test_unsupported_codec_counts_as_failure(self, engine, resolver):
        engine.unsupported = {"weird"}
        resolver.codecs["A"] = "weird"
        session = PlaybackSession(engine, resolver)
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.play()
        assert engine.played_urls == ["https://stream.test/B"]

    def test_engine_refusal_counts_as_failure(self, resolver):
        engine = FakeEngine(refuse=True)
        session = PlaybackSession(engine, resolver)
        session.enqueue(make_tracks("A", "B", "C", "D", "E"), "pl1")
        session.play()
        assert session.state is PlaybackState.FAILED
        assert len(engine.played_urls) == 3

    def test_engine_refusal_drops_cached_stream(self, resolver):
        session = PlaybackSession(FakeEngine(refuse=True), resolver, failure_threshold=1)
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.play()
        assert resolver.invalidated == ["A"]

    def test_resolve_failure_keeps_cache(self, session, resolver):
        resolver.failing = {"A"}
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.play()
        assert resolver.invalidated == []

    def test_order_mode_end_stops(self, session, resolver):
        session.set_mode(PlayMode.ORDER)
        resolver.failing = {"B"}
        session.enqueue(make_tracks("A", "B"), "pl1", 1)
        result = session.play()
        assert not result.played
        assert session.state is PlaybackState.STOPPED
        assert session.failures == 1

    def test_auth_required_stores_retry(self, session, resolver):
        reported = []
        session.bind(on_error=lambda kind, msg, retry: reported.append((kind, retry)))
        resolver.auth_ids = {"A"}
        session.enqueue(make_tracks("A", "B"), "pl1")
        result = session.play()
        assert result.error is ErrorKind.AUTH_REQUIRED
        assert session.state is PlaybackState.STOPPED
        assert session.failures == 0
        assert reported == [(ErrorKind.AUTH_REQUIRED, session.play)]
        assert resolver.requests == ["A"]


class TestEngineNotifications:
    def test_done_advances_once(self, session, engine):
        session.enqueue(make_tracks("A", "B", "C"), "pl1")
        session.play()
        session.on_done()
        assert session.queue.current_index == 1
        assert engine.played_urls == ["https://stream.test/A", "https://stream.test/B"]

    def test_done_ignored_when_not_playing(self, session, engine):
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.on_done()
        assert session.queue.current_index == 0
        assert engine.played_urls == []

    def test_done_at_end_of_order_goes_idle(self, session):
        session.set_mode(PlayMode.ORDER)
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        session.on_done()
        assert session.state is PlaybackState.IDLE

    def test_done_under_single_loop_replays(self, session, engine):
        session.set_mode(PlayMode.SINGLE_LOOP)
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.play()
        session.on_done()
        assert engine.played_urls == ["https://stream.test/A", "https://stream.test/A"]

    def test_tick_updates_elapsed(self, session):
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        session.on_tick(12.5)
        assert session.elapsed == 12.5

    def test_stuck_stream_skips_once(self, session, engine):
        session.enqueue([make_track("A", duration=200), make_track("B", duration=200)], "pl1")
        session.play()
        session.on_tick(205.0)
        assert session.queue.current_index == 0
        session.on_tick(211.0)
        assert session.queue.current_index == 1
        assert len(engine.played_urls) == 2


class TestLyrics:
    LRC = "[00:00.00]first\n[00:05.00]second\n[00:10.00]third\n"

    def _session(self, engine, resolver):
        scheduled = []
        session = PlaybackSession(
            engine, resolver, lyric_scheduler=lambda track, gen: scheduled.append((track.id, gen))
        )
        return session, scheduled

    def test_placeholder_until_fetched(self, engine, resolver):
        session, scheduled = self._session(engine, resolver)
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        assert scheduled == [("A", 1)]
        session.on_tick(1.0)
        assert session.lyric_window.current == "No lyrics"

    def test_stale_result_discarded(self, engine, resolver):
        session, scheduled = self._session(engine, resolver)
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.play()
        session.next_track()
        assert scheduled == [("A", 1), ("B", 2)]

        assert not session.apply_lyrics(1, "A", self.LRC)
        assert len(session.lyric_timer.track) == 1

        assert session.apply_lyrics(2, "B", self.LRC)
        assert len(session.lyric_timer.track) == 3
        session.on_tick(6.0)
        assert session.lyric_window.current == "second"

    def test_failed_fetch_keeps_placeholder(self, engine, resolver):
        session, _ = self._session(engine, resolver)
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        assert session.apply_lyrics(1, "A", None)
        assert session.lyric_timer.track.fragments[0].text == "No lyrics"

    def test_window_size_follows_setting(self, engine, resolver):
        session, _ = self._session(engine, resolver)
        session.enqueue(make_tracks("A"), "pl1")
        session.play()
        session.lyric_lines = 3
        session.on_tick(0.0)
        assert len(session.lyric_window.lines) == 3


class TestMenuPlayback:
    def test_play_from_menu(self, session, engine):
        menu = track_menu("pl1", make_tracks("A", "B", "C"))
        session.play_from_menu(menu, 2)
        assert session.queue.origin_key == "pl1"
        assert session.current_track.id == "C"
        assert engine.played_urls == ["https://stream.test/C"]

    def test_reselect_playing_track_toggles_pause(self, session, engine):
        menu = track_menu("pl1", make_tracks("A", "B", "C"))
        session.play_from_menu(menu, 1)
        session.play_from_menu(menu, 1)
        assert session.state is PlaybackState.PAUSED
        assert len(engine.played_urls) == 1

    def test_new_queue_leaves_intelligent(self, session):
        session.set_mode(PlayMode.INTELLIGENT)
        session.play_from_menu(track_menu("pl1", make_tracks("A", "B")), 0)
        assert session.mode is PlayMode.LIST_LOOP

    def test_queue_menu_jumps(self, session, engine):
        session.enqueue(make_tracks("A", "B", "C"), "pl1")
        queue = track_menu(CURRENT_QUEUE_KEY, make_tracks("A", "B", "C"))
        session.play_from_menu(queue, 2)
        assert session.queue.origin_key == "pl1"
        assert engine.played_urls == ["https://stream.test/C"]

    def test_locate_cursor(self, engine, resolver):
        menu = track_menu("pl1", make_tracks("A", "B", "C", "D"))
        nav = MenuNavigator(menu)
        session = PlaybackSession(engine, resolver, navigator=nav)
        session.play_from_menu(menu, 3)
        assert session.locate_cursor_to_playback()
        assert nav.cursor == 3

    def test_locate_ignored_in_other_menu(self, engine, resolver):
        menu = track_menu("pl1", make_tracks("A", "B", "C", "D"))
        nav = MenuNavigator(track_menu("pl2", make_tracks("X", "Y")))
        session = PlaybackSession(engine, resolver, navigator=nav)
        session.play_from_menu(menu, 3)
        assert not session.locate_cursor_to_playback()
        assert nav.cursor == 0

    def test_edge_pulls_next_page_of_origin(self, engine, resolver):
        more = make_tracks("D", "E")

        def bottom_out(_nav, menu):
            menu.extend([CatalogEntry.for_track(t) for t in more])
            return PROCEED

        menu = track_menu("pl1", make_tracks("A", "B", "C"), MenuHooks(bottom_out=bottom_out))
        nav = MenuNavigator(menu)
        nav.move_bottom()
        session = PlaybackSession(engine, resolver, navigator=nav)
        session.play_from_menu(menu, 2)

        session.on_done()
        assert _ids(session) == ["A", "B", "C", "D", "E"]
        assert session.current_track.id == "D"
        assert nav.cursor == 3

    def test_edge_pulls_next_page_with_cursor_elsewhere(self, engine, resolver):
        calls = []

        def bottom_out(_nav, menu):
            calls.append(menu.key)
            menu.extend([CatalogEntry.for_track(t) for t in make_tracks("D", "E")])
            return PROCEED

        menu = track_menu("pl1", make_tracks("A", "B", "C"), MenuHooks(bottom_out=bottom_out))
        nav = MenuNavigator(menu)
        session = PlaybackSession(engine, resolver, navigator=nav)
        session.set_mode(PlayMode.ORDER)
        session.play_from_menu(menu, 2)

        session.on_done()
        assert calls == ["pl1"]
        assert _ids(session) == ["A", "B", "C", "D", "E"]
        assert session.current_track.id == "D"
        assert session.state is PlaybackState.PLAYING
        assert nav.cursor == 0
        assert len(nav.items) == 5

    def test_queue_menu_follows_replaced_queue(self, engine, resolver, catalog):
        catalog.add_tracks("similar", "A", make_tracks("A", "X", "Y"))
        nav = MenuNavigator(track_menu("pl1", make_tracks("A", "B", "C")))
        session = PlaybackSession(engine, resolver, navigator=nav, catalog=catalog)
        session.play_from_menu(nav.menu, 0)
        nav.enter(child=queue_menu(session))
        assert [i.title for i in nav.items] == ["Title A", "Title B", "Title C"]

        session.start_intelligent()
        assert [i.title for i in nav.items] == ["Title A", "Title X", "Title Y"]

        session.play_from_menu(nav.menu, 1)
        assert session.current_track.id == "X"
        assert engine.played_urls[-1] == "https://stream.test/X"

    def test_stale_queue_menu_refuses_play(self, session, engine):
        stale = track_menu(CURRENT_QUEUE_KEY, make_tracks("A", "B", "C"))
        session.enqueue(make_tracks("X", "Y", "Z"), "pl2")
        result = session.play_from_menu(stale, 1)
        assert not result.played
        assert engine.played_urls == []


class TestIntelligent:
    def test_start_builds_similar_queue(self, session, catalog, engine):
        catalog.add_tracks("similar", "A", make_tracks("A", "X", "Y"))
        session.enqueue(make_tracks("A", "B"), "pl1")
        session.start_intelligent()
        assert _ids(session) == ["A", "X", "Y"]
        assert session.mode is PlayMode.INTELLIGENT
        assert session.queue.origin_key == INTELLIGENT_KEY
        assert engine.played_urls == ["https://stream.test/A"]

    def test_queue_grows_at_end(self, session, catalog):
        catalog.add_tracks("similar", "A", make_tracks("A", "X", "Y"))
        catalog.add_tracks("similar", "Y", make_tracks("Y", "Q", "R"))
        session.enqueue(make_tracks("A"), "pl1")
        session.start_intelligent()
        session.next_track()
        session.next_track()
        session.next_track()
        assert _ids(session) == ["A", "X", "Y", "Q", "R"]
        assert session.current_track.id == "Q"

    def test_fetch_failure_reported(self, session, catalog):
        errors = []
        session.bind(on_error=lambda kind, msg, retry: errors.append(kind))
        catalog.errors[("similar", "A")] = FetchResult.failed("offline")
        session.enqueue(make_tracks("A"), "pl1")
        assert not session.start_intelligent().played
        assert errors == [ErrorKind.NETWORK]
        assert session.mode is PlayMode.LIST_LOOP


class TestResume:
    def test_close_saves_snapshot(self, session, store, engine):
        session.enqueue(make_tracks("A", "B", "C"), "pl1", 1)
        session.play()
        session.close()
        assert [t.id for t in store.snapshot.tracks] == ["A", "B", "C"]
        assert store.snapshot.current_index == 1
        assert ("stop",) in engine.calls

    def test_restore_does_not_play(self, session, store, engine):
        store.snapshot = QueueSnapshot(tuple(make_tracks("A", "B")), 1, "pl1")
        store.mode = PlayMode.RANDOM
        assert session.restore()
        assert _ids(session) == ["A", "B"]
        assert session.queue.current_index == 1
        assert session.mode is PlayMode.RANDOM
        assert session.state is PlaybackState.IDLE
        assert engine.calls == []

    def test_restore_without_snapshot(self, session):
        assert not session.restore()
