"""Menu kinds backed by the remote catalog.

Each builder wires a ``Menu`` with hooks that fetch its first page on enter
and the following pages on bottom-out. Failures come back as HookResults so
the navigator leaves its state untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from musicfox.core.interfaces import CatalogFetch
from musicfox.core.menu import Menu, MenuHooks
from musicfox.core.models import CatalogEntry, EntryKind
from musicfox.core.results import (
    HALT,
    PROCEED,
    CatalogRequest,
    HookResult,
    RequestKind,
)
from musicfox.core.session import CURRENT_QUEUE_KEY

if TYPE_CHECKING:
    from musicfox.core.navigator import MenuNavigator
    from musicfox.core.session import PlaybackSession

logger = logging.getLogger(__name__)

ROOT_KEY = "root"
LIKED_SONGS_KEY = "liked_songs"
LIBRARY_PLAYLISTS_KEY = "library_playlists"
LIBRARY_ALBUMS_KEY = "library_albums"


def _paged_hooks(catalog: CatalogFetch, kind: RequestKind, target: str, limit: int) -> MenuHooks:
    def load_first(_nav: MenuNavigator, menu: Menu) -> HookResult:
        result = catalog.fetch(CatalogRequest(kind, target, None, limit))
        if not result.ok:
            return HookResult.from_fetch(result)
        menu.entries = list(result.entries)
        menu.next_page_token = result.next_page_token
        menu.has_more = result.has_more
        return PROCEED

    def load_more(_nav: MenuNavigator, menu: Menu) -> HookResult:
        if not menu.has_more:
            return HALT
        result = catalog.fetch(CatalogRequest(kind, target, menu.next_page_token, limit))
        if not result.ok:
            return HookResult.from_fetch(result)
        added = menu.extend(result.entries)
        menu.next_page_token = result.next_page_token
        # A page with nothing new would be fetched again on every boundary touch.
        menu.has_more = result.has_more and added > 0
        logger.debug("%s: %d more entries", menu.key, added)
        return PROCEED

    return MenuHooks(enter=load_first, bottom_out=load_more)


def liked_songs_menu(catalog: CatalogFetch, limit: int = 50) -> Menu:
    return Menu(
        key=LIKED_SONGS_KEY,
        title="Liked Songs",
        hooks=_paged_hooks(catalog, RequestKind.LIKED_SONGS, "", limit),
        playable=True,
    )


def playlist_menu(catalog: CatalogFetch, playlist_id: str, title: str = "", limit: int = 50) -> Menu:
    return Menu(
        key=f"playlist:{playlist_id}",
        title=title or "Playlist",
        hooks=_paged_hooks(catalog, RequestKind.PLAYLIST, playlist_id, limit),
        playable=True,
    )


def album_menu(catalog: CatalogFetch, album_id: str, title: str = "", limit: int = 50) -> Menu:
    return Menu(
        key=f"album:{album_id}",
        title=title or "Album",
        hooks=_paged_hooks(catalog, RequestKind.ALBUM, album_id, limit),
        playable=True,
    )


def search_menu(catalog: CatalogFetch, query: str, limit: int = 50) -> Menu:
    return Menu(
        key=f"search:{query}",
        title=f"Search: {query}",
        hooks=_paged_hooks(catalog, RequestKind.SEARCH, query, limit),
        playable=True,
    )


def library_playlists_menu(catalog: CatalogFetch, limit: int = 50) -> Menu:
    def open_playlist(menu: Menu, index: int) -> Menu | None:
        entry = menu.entries[index]
        if entry.kind is not EntryKind.PLAYLIST:
            return None
        return playlist_menu(catalog, entry.id, entry.title, limit)

    return Menu(
        key=LIBRARY_PLAYLISTS_KEY,
        title="Library Playlists",
        hooks=_paged_hooks(catalog, RequestKind.LIBRARY_PLAYLISTS, "", limit),
        child_factory=open_playlist,
    )


def library_albums_menu(catalog: CatalogFetch, limit: int = 50) -> Menu:
    def open_album(menu: Menu, index: int) -> Menu | None:
        entry = menu.entries[index]
        if entry.kind is not EntryKind.ALBUM:
            return None
        return album_menu(catalog, entry.id, entry.title, limit)

    return Menu(
        key=LIBRARY_ALBUMS_KEY,
        title="Library Albums",
        hooks=_paged_hooks(catalog, RequestKind.LIBRARY_ALBUMS, "", limit),
        child_factory=open_album,
    )


def queue_menu(session: PlaybackSession) -> Menu:
    """The play queue itself, shown as a playable menu."""

    def load_queue(_nav: MenuNavigator, menu: Menu) -> HookResult:
        menu.entries = [CatalogEntry.for_track(t) for t in session.queue.tracks]
        return PROCEED

    return Menu(
        key=CURRENT_QUEUE_KEY,
        title="Current Queue",
        hooks=MenuHooks(enter=load_queue),
        playable=True,
    )


def root_menu(
    catalog: CatalogFetch, session: PlaybackSession | None = None, limit: int = 50
) -> Menu:
    builders = [
        ("Liked Songs", lambda: liked_songs_menu(catalog, limit)),
        ("Library Playlists", lambda: library_playlists_menu(catalog, limit)),
        ("Library Albums", lambda: library_albums_menu(catalog, limit)),
    ]
    if session is not None:
        builders.append(("Current Queue", lambda: queue_menu(session)))

    def open_category(_menu: Menu, index: int) -> Menu | None:
        return builders[index][1]()

    return Menu(
        key=ROOT_KEY,
        title="musicfox",
        entries=[
            CatalogEntry(EntryKind.CATEGORY, f"category:{i}", title)
            for i, (title, _build) in enumerate(builders)
        ],
        child_factory=open_category,
    )
