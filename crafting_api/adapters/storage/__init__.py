"""Catalog storage adapters."""

from crafting_api.adapters.storage.base import AbstractItemStore, Item
from crafting_api.adapters.storage.sql_store import SqlItemStore, create_item_store

__all__ = [
    "AbstractItemStore",
    "Item",
    "SqlItemStore",
    "create_item_store",
]
