"""Recipe tree resolution.

Expands an item into the flattened tree of recipes that produce it. Each
node records the item, its display text and the item it was decomposed
from (``-1`` for the root).

Traversal rules:
- The root is always emitted first and is never used as a source twice.
- Both components of a recipe are emitted as soon as their parent is
  expanded, even when they were seen before under another parent.
- A component is expanded only if it has not been expanded yet and is not a
  configured base item, which guarantees termination on cyclic data.
- The first component's subtree is completed before the second's.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from crafting_api.adapters.storage.base import AbstractItemStore, Item
from crafting_api.core.errors import ItemNotFoundError

logger = logging.getLogger(__name__)

ROOT_PARENT_ID = -1

ComponentLookup = Callable[[int], "tuple[Item, Item] | None"]


@dataclass(frozen=True)
class RecipeNode:
    """One entry of a resolved recipe tree."""

    item_id: int
    text: str
    parent_id: int

    def as_row(self) -> tuple[int, str, int]:
        return (self.item_id, self.text, self.parent_id)


@dataclass
class _Traversal:
    """State owned by a single resolution."""

    lookup: ComponentLookup
    visited: set[int]
    nodes: list[RecipeNode] = field(default_factory=list)
    stack: list[Item] = field(default_factory=list)
    expansions: int = 0

    def take(self, item: Item) -> bool:
        """Mark ``item`` as a recursion source; False if it already was one."""
        if item.id in self.visited:
            return False
        self.visited.add(item.id)
        return True

    def expand(self, item: Item) -> None:
        components = self.lookup(item.id)
        self.expansions += 1
        if components is None:
            return

        for component in components:
            self.nodes.append(RecipeNode(component.id, component.text, item.id))
        # Pushed in reverse so the first component is popped, and finished, first
        for component in reversed(components):
            self.stack.append(component)

    def run(self, root: Item) -> list[RecipeNode]:
        self.nodes.append(RecipeNode(root.id, root.text, ROOT_PARENT_ID))
        self.stack.append(root)
        while self.stack:
            item = self.stack.pop()
            if self.take(item):
                self.expand(item)
        return self.nodes


def build_recipe_tree(
    root: Item,
    lookup: ComponentLookup,
    base_item_ids: Iterable[int] = (),
) -> list[RecipeNode]:
    """Expand ``root`` into its recipe tree using ``lookup`` for components.

    Args:
        root: The item being explained.
        lookup: Returns the ``(first, second)`` components of an item's
            preferred recipe, or None when the item has no recipe.
        base_item_ids: Ids that are never decomposed.

    Returns:
        Nodes in emission order, root first.
    """
    traversal = _Traversal(lookup=lookup, visited=set(base_item_ids))
    return traversal.run(root)


class RecipeService:
    """Resolves recipe trees against the catalog store."""

    def __init__(self, store: AbstractItemStore, base_item_ids: Iterable[int] = ()) -> None:
        self._store = store
        self._base_item_ids = frozenset(base_item_ids)

    @property
    def base_item_ids(self) -> frozenset[int]:
        return self._base_item_ids

    def resolve_recipe(self, item_id: int) -> list[RecipeNode]:
        """Resolve the recipe tree of ``item_id``.

        Raises:
            ItemNotFoundError: If the item does not exist.
            StorageAppError: If any storage query fails; the partial tree is
                discarded.
        """
        root = self._store.item_by_id(item_id)
        if root is None:
            raise ItemNotFoundError(
                code="item_not_found",
                message=f"Item {item_id} not found",
                details={"item_id": item_id},
            )

        nodes = build_recipe_tree(root, self._store.first_recipe_for, self._base_item_ids)
        logger.info("recipe.resolved", extra={"item_id": item_id, "nodes": len(nodes)})
        return nodes
