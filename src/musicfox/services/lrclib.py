"""Synced lyrics from LRCLIB.net."""

from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request

from musicfox import __version__
from musicfox.core.models import Track

logger = logging.getLogger(__name__)

_BASE_URL = "https://lrclib.net/api/get"


class LrclibLyrics:
    """Callable lyric source: ``LrclibLyrics()(track)`` returns LRC text or None.

    Blocking; the controller runs it with ``asyncio.to_thread``.
    """

    def __init__(self, timeout: float = 5) -> None:
        self._timeout = timeout

    def build_url(self, track: Track) -> str:
        params: dict[str, str] = {
            "track_name": track.title,
            "artist_name": track.artists[0] if track.artists else "",
        }
        if track.album:
            params["album_name"] = track.album
        if track.duration:
            params["duration"] = str(int(track.duration))
        return f"{_BASE_URL}?{urllib.parse.urlencode(params)}"

    def __call__(self, track: Track) -> str | None:
        req = urllib.request.Request(
            self.build_url(track), headers={"User-Agent": f"musicfox/{__version__}"}
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                data = json.loads(resp.read().decode())
        except Exception:
            logger.debug("LRCLIB request failed for %r by %r", track.title, track.artist_name, exc_info=True)
            return None
        if not isinstance(data, dict):
            return None
        return data.get("syncedLyrics") or None
