"""Audio engine backed by python-mpv."""

from __future__ import annotations

import ctypes
import locale
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

import mpv

logger = logging.getLogger(__name__)

# Codec families mpv decodes for audio-only playback.
SUPPORTED_CODECS = frozenset({"opus", "mp4a", "aac", "vorbis", "mp3", "flac", "m4a", "webm", "ogg"})

# Position notifications are throttled to about two per second.
_TICK_INTERVAL = 0.4


def _force_c_numeric_locale() -> None:
    # mpv segfaults if LC_NUMERIC is not C.
    libc = ctypes.CDLL("libc.so.6")
    libc.setlocale.restype = ctypes.c_char_p
    libc.setlocale.argtypes = [ctypes.c_int, ctypes.c_char_p]
    libc.setlocale(locale.LC_NUMERIC, b"C")


class MpvEngine:
    """Single audio output configured for audio-only stream playback.

    Stream URLs are resolved elsewhere and handed in ready to play. The
    ``on_done`` and ``on_tick`` listeners are called on mpv's event thread.
    """

    def __init__(self, volume: int = 80) -> None:
        self._volume = volume
        self._on_done: Callable[[], None] | None = None
        self._on_tick: Callable[[float], None] | None = None
        # end-file events to ignore: one per stream we replace or stop on purpose.
        self._end_file_skip = 0
        self._skip_lock = threading.Lock()
        self._last_tick = 0.0
        self._loaded = False
        self._mpv = self._create()

    def _create(self) -> mpv.MPV:
        _force_c_numeric_locale()
        player = mpv.MPV(
            ytdl=False,
            video=False,
            terminal=False,
            input_default_bindings=False,
            input_vo_keyboard=False,
        )
        player.volume = self._volume
        player.observe_property("time-pos", self._on_time_pos_change)

        @player.event_callback("end-file")
        def _on_end_file(event: Any) -> None:
            with self._skip_lock:
                if self._end_file_skip > 0:
                    self._end_file_skip -= 1
                    return
            self._loaded = False
            logger.debug("Stream ended: %s", getattr(event, "reason", None))
            if self._on_done is not None:
                self._on_done()

        return player

    def set_listeners(
        self,
        on_done: Callable[[], None] | None,
        on_tick: Callable[[float], None] | None,
    ) -> None:
        self._on_done = on_done
        self._on_tick = on_tick

    def _on_time_pos_change(self, _name: str, value: float | None) -> None:
        if value is None or self._on_tick is None:
            return
        now = time.monotonic()
        if now - self._last_tick < _TICK_INTERVAL:
            return
        self._last_tick = now
        self._on_tick(float(value))

    # -- AudioEngine ------------------------------------------------------

    def supports(self, codec: str) -> bool:
        return codec.split(".", 1)[0].lower() in SUPPORTED_CODECS

    def play(self, url: str, codec: str, expected_duration: float) -> bool:
        """Start *url*. Returns False if mpv could not take it even after recovery."""
        if self._loaded:
            # Replacing a stream makes mpv fire end-file for the old one.
            with self._skip_lock:
                self._end_file_skip += 1
        try:
            self._mpv.play(url)
            self._mpv.pause = False
        except mpv.ShutdownError:
            logger.warning("mpv crashed, attempting recovery...")
            if not self._try_recover():
                return False
            try:
                self._mpv.play(url)
                self._mpv.pause = False
            except mpv.ShutdownError:
                logger.error("mpv died again while starting %s stream", codec)
                return False
        self._loaded = True
        logger.debug("mpv playing %s stream (%.0fs expected)", codec, expected_duration)
        return True

    def pause(self) -> None:
        self._mpv.pause = True

    def resume(self) -> None:
        self._mpv.pause = False

    def stop(self) -> None:
        if self._loaded:
            with self._skip_lock:
                self._end_file_skip += 1
        try:
            self._mpv.stop()
        except mpv.ShutdownError:
            pass
        self._loaded = False

    def seek(self, seconds: float) -> None:
        """Seek to an absolute position in seconds."""
        try:
            self._mpv.seek(seconds, reference="absolute")
        except mpv.ShutdownError:
            pass

    # -- Health & lifecycle -----------------------------------------------

    def _try_recover(self) -> bool:
        try:
            logger.info("Re-initializing mpv instance...")
            self._mpv = self._create()
            self._loaded = False
            with self._skip_lock:
                self._end_file_skip = 0
            logger.info("mpv recovery successful")
            return True
        except Exception:
            logger.exception("mpv recovery failed")
            return False

    def shutdown(self) -> None:
        """Terminate the mpv instance. Call on application exit."""
        try:
            self._mpv.terminate()
        except mpv.ShutdownError:
            pass
