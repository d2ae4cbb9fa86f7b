"""YouTube Music catalog backed by ytmusicapi."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import requests
import requests.exceptions
from ytmusicapi import YTMusic

from musicfox.config.paths import AUTH_FILE
from musicfox.core.models import CatalogEntry, EntryKind, Track
from musicfox.core.results import CatalogRequest, FetchResult, RequestKind
from musicfox.utils.formatting import (
    extract_artists,
    extract_duration,
    get_video_id,
)

logger = logging.getLogger(__name__)

# Requests that only make sense for a signed-in user.
_LIBRARY_KINDS = frozenset(
    {RequestKind.LIKED_SONGS, RequestKind.LIBRARY_PLAYLISTS, RequestKind.LIBRARY_ALBUMS}
)


class _TimeoutSession(requests.Session):
    """requests session that applies a default timeout to every call."""

    def __init__(self, timeout: float) -> None:
        super().__init__()
        self._timeout = timeout

    def request(self, *args: Any, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", self._timeout)
        return super().request(*args, **kwargs)


def normalize_track(raw: dict[str, Any], album: str = "") -> Track | None:
    """Convert a ytmusicapi track dict into a Track, or None if unplayable."""
    video_id = get_video_id(raw)
    if not video_id:
        return None
    album_info = raw.get("album")
    if isinstance(album_info, dict):
        album = album_info.get("name") or album
    elif isinstance(album_info, str):
        album = album_info
    return Track(
        id=video_id,
        title=raw.get("title") or "Unknown",
        artists=extract_artists(raw),
        duration=float(extract_duration(raw)),
        album=album,
    )


def normalize_tracks(raw_tracks: list[dict[str, Any]], album: str = "") -> list[Track]:
    tracks = []
    for raw in raw_tracks:
        track = normalize_track(raw, album)
        if track is not None:
            tracks.append(track)
    return tracks


def _track_entries(tracks: list[Track]) -> list[CatalogEntry]:
    return [CatalogEntry.for_track(t) for t in tracks]


def _playlist_entry(raw: dict[str, Any]) -> CatalogEntry | None:
    playlist_id = raw.get("playlistId") or ""
    if not playlist_id:
        return None
    count = raw.get("count")
    subtitle = f"{count} tracks" if count else ""
    return CatalogEntry(EntryKind.PLAYLIST, playlist_id, raw.get("title") or "Untitled", subtitle)


def _album_entry(raw: dict[str, Any]) -> CatalogEntry | None:
    browse_id = raw.get("browseId") or ""
    if not browse_id:
        return None
    subtitle = ", ".join(extract_artists(raw))
    if raw.get("year"):
        subtitle = f"{subtitle} · {raw['year']}".strip(" ·")
    return CatalogEntry(EntryKind.ALBUM, browse_id, raw.get("title") or "Untitled", subtitle)


class YTMusicCatalog:
    """Catalog source for the menu hooks.

    ytmusicapi has no page cursors for these endpoints, so pages are offsets:
    the token is the index of the first entry of the next page, and each
    call asks for everything up to the end of the requested page.
    """

    def __init__(self, auth_path: Path = AUTH_FILE, timeout: float = 15) -> None:
        self._auth_path = auth_path
        self._timeout = timeout
        self._ytm: YTMusic | None = None

    @property
    def authenticated(self) -> bool:
        return self._auth_path.exists()

    @property
    def client(self) -> YTMusic:
        """Lazily initialise and return the underlying YTMusic client."""
        if self._ytm is None:
            session = _TimeoutSession(self._timeout)
            if self.authenticated:
                self._ytm = YTMusic(str(self._auth_path), requests_session=session)
            else:
                self._ytm = YTMusic(requests_session=session)
        return self._ytm

    def fetch(self, request: CatalogRequest) -> FetchResult:
        if request.kind in _LIBRARY_KINDS and not self.authenticated:
            return FetchResult.auth_required(f"{request.kind} needs a signed-in account")

        offset = int(request.page_token or 0)
        wanted = offset + request.limit
        try:
            entries = self._fetch_entries(request, wanted)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            logger.warning("Catalog request %s failed: network error: %s", request.kind, exc)
            return FetchResult.failed(str(exc))
        except Exception as exc:
            logger.debug("Catalog request %s failed", request.kind, exc_info=True)
            if "authenticat" in str(exc).lower():
                return FetchResult.auth_required(str(exc))
            return FetchResult.failed(str(exc) or type(exc).__name__)

        page = entries[offset:wanted]
        has_more = len(entries) >= wanted
        return FetchResult(
            entries=page,
            has_more=has_more,
            next_page_token=str(wanted) if has_more else None,
        )

    def _fetch_entries(self, request: CatalogRequest, limit: int) -> list[CatalogEntry]:
        client = self.client
        match request.kind:
            case RequestKind.LIKED_SONGS:
                playlist = client.get_liked_songs(limit=limit)
                return _track_entries(normalize_tracks(playlist.get("tracks", [])))
            case RequestKind.PLAYLIST:
                playlist = client.get_playlist(request.target, limit=limit)
                return _track_entries(normalize_tracks(playlist.get("tracks", [])))
            case RequestKind.ALBUM:
                album = client.get_album(request.target)
                tracks = normalize_tracks(album.get("tracks", []), album.get("title", ""))
                return _track_entries(tracks)
            case RequestKind.SEARCH:
                results = client.search(request.target, filter="songs", limit=limit)
                return _track_entries(normalize_tracks(results))
            case RequestKind.SIMILAR:
                watch = client.get_watch_playlist(videoId=request.target, radio=True, limit=limit)
                return _track_entries(normalize_tracks(watch.get("tracks", [])))
            case RequestKind.LIBRARY_PLAYLISTS:
                raw = client.get_library_playlists(limit=limit)
                return [e for e in map(_playlist_entry, raw) if e is not None]
            case RequestKind.LIBRARY_ALBUMS:
                raw = client.get_library_albums(limit=limit)
                return [e for e in map(_album_entry, raw) if e is not None]
        return []
