"""Menu nodes and the per-menu hook capability struct.

A ``Menu`` owns the entries the navigator displays. Behavior that differs
between menu kinds (how entries are fetched, when paging stops, which child
opens on enter) lives in the ``MenuHooks`` and ``child_factory`` supplied when
the menu is built, not in subclasses.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from musicfox.core.models import CatalogEntry, Item, Track
from musicfox.core.results import HookResult

if TYPE_CHECKING:
    from musicfox.core.navigator import MenuNavigator

Hook = Callable[["MenuNavigator", "Menu"], HookResult]
ChildFactory = Callable[["Menu", int], "Menu | None"]


@dataclass(frozen=True, slots=True)
class MenuHooks:
    """Hooks fired at navigation lifecycle points. Any of them may be None."""

    enter: Hook | None = None
    back: Hook | None = None
    prev_page: Hook | None = None
    next_page: Hook | None = None
    top_out: Hook | None = None
    bottom_out: Hook | None = None


NO_HOOKS = MenuHooks()


@dataclass(eq=False)
class Menu:
    key: str
    title: str
    hooks: MenuHooks = NO_HOOKS
    entries: list[CatalogEntry] = field(default_factory=list)
    playable: bool = False
    child_factory: ChildFactory | None = None
    # Paging state owned by the fetch hooks.
    next_page_token: str | None = None
    has_more: bool = False

    def __repr__(self) -> str:
        return f"Menu(key={self.key!r}, entries={len(self.entries)})"

    def items(self) -> list[Item]:
        return [e.as_item() for e in self.entries]

    def tracks(self) -> list[Track]:
        return [e.track for e in self.entries if e.track is not None]

    def title_item(self) -> Item:
        return Item(self.title)

    def submenu(self, index: int) -> Menu | None:
        """Child menu opened by entering *index*, or None if it is a leaf."""
        if self.child_factory is None or not 0 <= index < len(self.entries):
            return None
        return self.child_factory(self, index)

    def extend(self, entries: list[CatalogEntry]) -> int:
        """Append entries, skipping ids already present. Returns how many were added."""
        seen = {e.id for e in self.entries}
        added = 0
        for entry in entries:
            if entry.id in seen:
                continue
            seen.add(entry.id)
            self.entries.append(entry)
            added += 1
        return added
