"""Item catalog storage interface.

Services depend on this abstraction so the SQL backend can be replaced by an
in-memory fake in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Item:
    """A catalog entry.

    Attributes:
        id: Storage-assigned identifier.
        text: Display string, emoji prefix followed by the name.
    """

    id: int
    text: str

    def as_row(self) -> tuple[int, str]:
        return (self.id, self.text)


def merge_display_text(emoji: str | None, name: str) -> str:
    """Build the display string shown to clients (``"<emoji> <name>"``)."""
    return f"{emoji or ''} {name}"


class AbstractItemStore(ABC):
    """Read-only queries the API needs from the catalog.

    Implementations must be safe for concurrent use from request threads.
    Query failures are raised as ``StorageAppError``.
    """

    @abstractmethod
    def total_item_count(self) -> int:
        """Return the number of items in the catalog."""
        raise NotImplementedError

    @abstractmethod
    def item_by_id(self, item_id: int) -> Item | None:
        """Return the item with ``item_id``, or None when it does not exist."""
        raise NotImplementedError

    @abstractmethod
    def item_batch(self, limit: int, after_id: int) -> list[Item]:
        """Return up to ``limit`` items with id greater than ``after_id``, by id."""
        raise NotImplementedError

    @abstractmethod
    def items_by_fuzzy_name(self, query: str, limit: int) -> list[Item]:
        """Return up to ``limit`` items whose name contains ``query``, ignoring case."""
        raise NotImplementedError

    @abstractmethod
    def first_recipe_for(self, item_id: int) -> tuple[Item, Item] | None:
        """Return the components of the preferred recipe producing ``item_id``.

        The preferred recipe has the lowest first component id, then the
        highest second component id. Returns None when no recipe exists.
        """
        raise NotImplementedError
