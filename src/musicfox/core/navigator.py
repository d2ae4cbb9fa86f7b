"""Paginated, cursor-addressable menu navigation with lazy-loading hooks."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from musicfox.core.menu import Hook, Menu
from musicfox.core.models import CatalogEntry, Item
from musicfox.core.results import (
    MOVED,
    PROCEED,
    UNCHANGED,
    HookResult,
    NavResult,
)

logger = logging.getLogger(__name__)

# Below this width the menu falls back to a single column.
DUAL_COLUMN_MIN_WIDTH = 75
# Rows below the menu taken by the search bar, lyrics and the song/progress lines.
_BOTTOM_HEIGHT = 13
# Rows between the menu and the lyric area reserved for the player.
_PLAYER_HEIGHT = 5

LoadingCallback = Callable[[bool], None]


@dataclass(frozen=True, slots=True)
class StackFrame:
    """Snapshot of the navigator taken when descending into a child menu."""

    items: tuple[Item, ...]
    cursor: int
    page: int
    title: Item
    menu: Menu


class MenuStack:
    """LIFO of StackFrames used for back-navigation."""

    def __init__(self) -> None:
        self._frames: list[StackFrame] = []

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[StackFrame]:
        return iter(self._frames)

    def push(self, frame: StackFrame) -> None:
        self._frames.append(frame)

    def pop(self) -> StackFrame | None:
        if not self._frames:
            return None
        return self._frames.pop()

    def peek(self) -> StackFrame | None:
        return self._frames[-1] if self._frames else None

    def clear(self) -> None:
        self._frames.clear()


class MenuNavigator:
    """Cursor and page over the current menu's items, plus the menu stack.

    ``page`` is 1-based and always equals ``cursor // page_size + 1``. In
    dual-column layout items are laid out row-major, two per row, so even
    indices are the left column.

    Hooks run synchronously. While one runs ``busy`` is True and the loading
    callback is told so; the controller drops input until it clears.
    """

    def __init__(
        self,
        root: Menu,
        page_size: int = 10,
        dual_column: bool = True,
        dynamic_row_count: bool = False,
        on_loading: LoadingCallback | None = None,
    ) -> None:
        self._menu = root
        self._title = root.title_item()
        self._items: list[Item] = root.items()
        self._cursor = 0
        self._page = 1
        self._base_page_size = max(1, page_size)
        self._page_size = self._base_page_size
        self._dual_allowed = dual_column
        self._dual = False
        self._dynamic = dynamic_row_count
        self.on_loading = on_loading
        self._busy = False
        self._stack = MenuStack()
        self._bottom_row = 0
        self._height = 0

    # -- Properties -------------------------------------------------------

    @property
    def menu(self) -> Menu:
        return self._menu

    @property
    def current_key(self) -> str:
        return self._menu.key

    @property
    def title(self) -> Item:
        return self._title

    @property
    def items(self) -> list[Item]:
        return list(self._items)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def page(self) -> int:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def columns(self) -> int:
        return 2 if self._dual else 1

    @property
    def dual_column(self) -> bool:
        return self._dual

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def stack(self) -> MenuStack:
        return self._stack

    @property
    def page_count(self) -> int:
        return max(1, -(-len(self._items) // self._page_size))

    @property
    def selected_item(self) -> Item | None:
        if 0 <= self._cursor < len(self._items):
            return self._items[self._cursor]
        return None

    @property
    def selected_entry(self) -> CatalogEntry | None:
        if 0 <= self._cursor < len(self._menu.entries):
            return self._menu.entries[self._cursor]
        return None

    @property
    def lyric_rows(self) -> int:
        """Rows left for lyrics under the menu at the last known height."""
        return self._height - _PLAYER_HEIGHT - self._bottom_row

    def page_items(self) -> list[Item]:
        start = (self._page - 1) * self._page_size
        return self._items[start : start + self._page_size]

    # -- Hooks ------------------------------------------------------------

    def run_hook(self, hook: Hook | None, menu: Menu) -> HookResult:
        """Run *hook* for *menu* with input suspended and loading shown."""
        if hook is None:
            return PROCEED
        was_busy = self._busy
        self._busy = True
        if self.on_loading is not None:
            self.on_loading(True)
        try:
            result = hook(self, menu)
        finally:
            self._busy = was_busy
            if self.on_loading is not None:
                self.on_loading(False)
        if not result.proceed:
            logger.debug(
                "Hook on %s halted (%s) %s", menu.key, result.error or "veto", result.message
            )
        return result

    def _refresh_items(self) -> None:
        self._items = self._menu.items()

    def _page_of(self, index: int) -> int:
        return index // self._page_size + 1

    def _move_to(self, index: int) -> NavResult:
        """Set the cursor, firing one page hook per page crossed.

        A veto from any page hook leaves cursor and page where they were.
        """
        target = self._page_of(index)
        page = self._page
        while page != target:
            step = 1 if target > page else -1
            hooks = self._menu.hooks
            hook = hooks.next_page if step > 0 else hooks.prev_page
            result = self.run_hook(hook, self._menu)
            if not result.proceed:
                return NavResult.from_hook(result)
            page += step
        self._cursor = index
        self._page = target
        return MOVED

    # -- Cursor movement --------------------------------------------------

    def move_down(self) -> NavResult:
        step = 2 if self._dual else 1
        bottom_out = self._menu.hooks.bottom_out
        if self._cursor + step > len(self._items) - 1 and bottom_out is not None:
            result = self.run_hook(bottom_out, self._menu)
            if not result.proceed:
                return NavResult.from_hook(result)
            self._refresh_items()
        if self._cursor + step > len(self._items) - 1:
            return UNCHANGED
        return self._move_to(self._cursor + step)

    def move_up(self) -> NavResult:
        step = 2 if self._dual else 1
        top_out = self._menu.hooks.top_out
        if self._cursor - step < 0 and top_out is not None:
            result = self.run_hook(top_out, self._menu)
            if not result.proceed:
                return NavResult.from_hook(result)
            self._refresh_items()
        if self._cursor - step < 0:
            return UNCHANGED
        return self._move_to(self._cursor - step)

    def move_left(self) -> NavResult:
        if not self._dual or self._cursor % 2 == 0:
            return UNCHANGED
        return self._move_to(self._cursor - 1)

    def move_right(self) -> NavResult:
        if not self._dual or self._cursor % 2 != 0:
            return UNCHANGED
        bottom_out = self._menu.hooks.bottom_out
        if self._cursor >= len(self._items) - 1 and bottom_out is not None:
            result = self.run_hook(bottom_out, self._menu)
            if not result.proceed:
                return NavResult.from_hook(result)
            self._refresh_items()
        if self._cursor >= len(self._items) - 1:
            return UNCHANGED
        return self._move_to(self._cursor + 1)

    def move_top(self) -> NavResult:
        if not self._items:
            return UNCHANGED
        return self._move_to(self._cursor % 2 if self._dual else 0)

    def move_bottom(self) -> NavResult:
        count = len(self._items)
        if not count:
            return UNCHANGED
        if self._dual and count % 2 == 0:
            # Same column as the cursor, last row.
            index = count + self._cursor % 2 - 2
        elif self._dual and self._cursor % 2 != 0:
            index = count - 2
        else:
            index = count - 1
        return self._move_to(index)

    def page_down(self) -> NavResult:
        if self._page >= self.page_count:
            return UNCHANGED
        return self._move_to(self._first_on_page(self._page + 1))

    def page_up(self) -> NavResult:
        if self._page <= 1:
            return UNCHANGED
        return self._move_to(self._first_on_page(self._page - 1))

    def _first_on_page(self, page: int) -> int:
        index = (page - 1) * self._page_size
        if self._dual:
            index += self._cursor % 2
        return min(index, len(self._items) - 1)

    def select(self, index: int) -> NavResult:
        """Put the cursor on *index*, paging as many times as needed."""
        if not 0 <= index < len(self._items):
            return UNCHANGED
        if index == self._cursor:
            return UNCHANGED
        return self._move_to(index)

    # -- Hierarchy --------------------------------------------------------

    def enter(
        self,
        index: int | None = None,
        child: Menu | None = None,
        title: Item | None = None,
    ) -> NavResult:
        """Descend into *child*, or into the submenu of the entry at *index*.

        The child's enter hook decides; nothing is pushed unless it proceeds.
        """
        if child is None:
            if index is None:
                index = self._cursor
            child = self._menu.submenu(index)
            if child is None:
                return UNCHANGED

        result = self.run_hook(child.hooks.enter, child)
        if not result.proceed:
            return NavResult.from_hook(result)

        self._stack.push(
            StackFrame(tuple(self._items), self._cursor, self._page, self._title, self._menu)
        )
        self._menu = child
        self._title = title or child.title_item()
        self._items = child.items()
        self._cursor = 0
        self._page = 1
        logger.debug("Entered %s (depth %d)", child.key, len(self._stack))
        return MOVED

    def back(self) -> NavResult:
        if not self._stack:
            return UNCHANGED
        result = self.run_hook(self._menu.hooks.back, self._menu)
        if not result.proceed:
            return NavResult.from_hook(result)

        frame = self._stack.pop()
        if frame is None:
            return UNCHANGED
        self._menu = frame.menu
        self._title = frame.title
        self._items = list(frame.items)
        self._cursor = frame.cursor
        self._page = frame.page
        if len(self._menu.entries) != len(self._items):
            # The menu grew while hidden (off-screen paging during playback).
            self._refresh_items()
        return MOVED

    def refresh(self) -> NavResult:
        """Re-read items from the current menu after it was changed in place."""
        self._refresh_items()
        if self._items and self._cursor >= len(self._items):
            self._cursor = len(self._items) - 1
        elif not self._items:
            self._cursor = 0
        self._page = self._page_of(self._cursor)
        return MOVED

    # -- Layout -----------------------------------------------------------

    def resize(self, width: int, height: int) -> None:
        """Recompute columns and page size for a viewport of *width* x *height*."""
        self._dual = width >= DUAL_COLUMN_MIN_WIDTH and self._dual_allowed
        self._height = height
        start_row = height // 3

        page_size = self._base_page_size
        if self._dynamic:
            max_entries = (height - start_row - _BOTTOM_HEIGHT) * self.columns
            page_size = max(max_entries, self._base_page_size)
        if self._dual and page_size % 2:
            # Keep rows whole so left/right never crosses a page.
            page_size = max(2, page_size - 1)
        self._page_size = page_size

        rows = -(-page_size // 2) if self._dual else page_size
        self._bottom_row = start_row + rows + 1
        self._page = self._page_of(self._cursor)
