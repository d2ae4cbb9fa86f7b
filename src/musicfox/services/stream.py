"""Stream URL resolution using yt-dlp."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from musicfox.core.results import ErrorKind, ResolveResult
from musicfox.utils.formatting import VALID_VIDEO_ID

logger = logging.getLogger(__name__)

# Cache resolved URLs for 5 hours (YouTube URLs typically expire after ~6 hours).
_CACHE_TTL_SECONDS = 5 * 60 * 60

# A cached URL this close to expiry is resolved again.
_EXPIRY_MARGIN_SECONDS = 300

_CACHE_MAX_SIZE = 128

# Initial attempt plus two retries.
_RETRY_DELAYS = (0.0, 1.0, 2.0)

# Quality presets mapping to yt-dlp format strings.
QUALITY_FORMATS: dict[str, str] = {
    "high": "bestaudio/best",
    "medium": "bestaudio[abr<=128]/bestaudio/best",
    "low": "bestaudio[abr<=64]/bestaudio/best",
}


@dataclass(frozen=True, slots=True)
class StreamInfo:
    url: str
    video_id: str
    codec: str  # e.g. "opus", "mp4a.40.2"
    bitrate: int  # kbps
    expires_at: float  # unix timestamp


class _AuthRequired(Exception):
    """yt-dlp asked for a signed-in session."""


class StreamResolver:
    """Resolves track ids to direct audio stream URLs.

    Uses the yt-dlp Python API to extract stream information without
    downloading, and caches results in memory until shortly before the
    signed URLs expire. ``resolve`` blocks; the session calls it while the
    loading indicator is up.
    """

    def __init__(self, quality: str = "high", retry_delays: tuple[float, ...] = _RETRY_DELAYS) -> None:
        self._quality = quality
        self._retry_delays = retry_delays
        self._cache: dict[str, StreamInfo] = {}
        self._cache_lock = threading.Lock()

    @property
    def quality(self) -> str:
        return self._quality

    @quality.setter
    def quality(self, value: str) -> None:
        if value not in QUALITY_FORMATS:
            raise ValueError(f"Unknown quality '{value}'. Choose from: {list(QUALITY_FORMATS)}")
        self._quality = value

    def _build_ydl_opts(self) -> dict:
        return {
            "format": QUALITY_FORMATS.get(self._quality, QUALITY_FORMATS["high"]),
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "skip_download": True,
            "writeinfojson": False,
            "writethumbnail": False,
        }

    # -- Resolution -------------------------------------------------------

    def resolve(self, track_id: str) -> ResolveResult:
        """Resolve *track_id* to a stream URL and codec, using the cache when fresh."""
        if not VALID_VIDEO_ID.match(track_id):
            logger.warning("Invalid track id rejected: %r", track_id)
            return ResolveResult.failed(ErrorKind.NETWORK, f"invalid track id {track_id!r}")

        cached = self._get_cached(track_id)
        if cached is not None:
            logger.debug("Cache hit for track_id=%s", track_id)
            return ResolveResult(url=cached.url, codec=cached.codec)

        logger.debug("Cache miss for track_id=%s, resolving via yt-dlp", track_id)
        url = f"https://music.youtube.com/watch?v={track_id}"
        for attempt, delay in enumerate(self._retry_delays):
            if delay > 0:
                time.sleep(delay)
            try:
                info = self._try_resolve(url, track_id, attempt)
            except _AuthRequired as exc:
                return ResolveResult.failed(ErrorKind.AUTH_REQUIRED, str(exc))
            if info is not None:
                self._put_cache(info)
                return ResolveResult(url=info.url, codec=info.codec)
        return ResolveResult.failed(ErrorKind.NETWORK, f"could not resolve {track_id}")

    def _try_resolve(self, url: str, track_id: str, attempt: int) -> StreamInfo | None:
        import yt_dlp  # Lazy import: ~200-400ms, only needed on first stream resolution

        try:
            with yt_dlp.YoutubeDL(self._build_ydl_opts()) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as exc:
            if "sign in" in str(exc).lower():
                raise _AuthRequired(str(exc)) from exc
            logger.warning(
                "yt-dlp download error for track_id=%s (attempt %d): %s",
                track_id, attempt + 1, exc,
            )
            return None
        except Exception:
            logger.warning(
                "Unexpected error resolving stream for track_id=%s (attempt %d)",
                track_id, attempt + 1, exc_info=True,
            )
            return None

        if info is None:
            logger.error("yt-dlp returned no info for track_id=%s", track_id)
            return None
        return _stream_info(info, track_id)

    # -- Cache ------------------------------------------------------------

    def _get_cached(self, track_id: str) -> StreamInfo | None:
        with self._cache_lock:
            cached = self._cache.get(track_id)
            if cached is None:
                return None
            if time.time() >= cached.expires_at - _EXPIRY_MARGIN_SECONDS:
                del self._cache[track_id]
                return None
            return cached

    def _put_cache(self, info: StreamInfo) -> None:
        with self._cache_lock:
            self._cache[info.video_id] = info

            now = time.time()
            for vid in [v for v, si in self._cache.items() if now >= si.expires_at]:
                del self._cache[vid]

            if len(self._cache) > _CACHE_MAX_SIZE:
                oldest = sorted(self._cache, key=lambda v: self._cache[v].expires_at)
                for vid in oldest[: len(self._cache) - _CACHE_MAX_SIZE]:
                    del self._cache[vid]

    def invalidate(self, track_id: str) -> None:
        with self._cache_lock:
            self._cache.pop(track_id, None)


def _stream_info(info: dict, track_id: str) -> StreamInfo | None:
    """Pick the audio URL and codec out of a yt-dlp info dict."""
    stream_url: str = info.get("url", "")
    codec = info.get("acodec") or "none"
    if not stream_url:
        # Merged formats nest the audio stream under requested_formats.
        for fmt in info.get("requested_formats") or []:
            if fmt.get("acodec") not in (None, "none"):
                stream_url = fmt.get("url", "")
                codec = fmt.get("acodec")
                break

    if not stream_url:
        logger.error("No stream URL found for track_id=%s", track_id)
        return None

    if codec == "none":
        codec = info.get("audio_ext") or info.get("ext") or "unknown"

    return StreamInfo(
        url=stream_url,
        video_id=track_id,
        codec=codec,
        bitrate=int(info.get("abr") or info.get("tbr") or 0),
        expires_at=time.time() + _CACHE_TTL_SECONDS,
    )
