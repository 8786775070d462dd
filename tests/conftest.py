"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests. It
pins the environment before any settings are imported and provides an
in-memory catalog store so API tests never touch a real database.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from collections import Counter
from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from crafting_api.adapters.storage.base import AbstractItemStore, Item
from crafting_api.core.app_factory import create_app
from crafting_api.core.config import (
    AppSettings,
    CacheSettings,
    RecipeSettings,
    Settings,
)
from crafting_api.core.errors import StorageAppError


class FakeItemStore(AbstractItemStore):
    """Dict-backed catalog store that records every call.

    Attributes:
        calls: Number of calls per method name.
        fail: Method names that raise StorageAppError when called.
    """

    def __init__(
        self,
        items: dict[int, str] | None = None,
        recipes: list[tuple[int, int, int]] | None = None,
    ) -> None:
        self.items: dict[int, str] = dict(items or {})
        self.recipes: list[tuple[int, int, int]] = list(recipes or [])
        self.calls: Counter[str] = Counter()
        self.fail: set[str] = set()

    def _record(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail:
            raise StorageAppError(code="storage_error", message=f"{name} failed: disk I/O error")

    def _item(self, item_id: int) -> Item:
        return Item(item_id, self.items[item_id])

    def total_item_count(self) -> int:
        self._record("total_item_count")
        return len(self.items)

    def item_by_id(self, item_id: int) -> Item | None:
        self._record("item_by_id")
        if item_id not in self.items:
            return None
        return self._item(item_id)

    def item_batch(self, limit: int, after_id: int) -> list[Item]:
        self._record("item_batch")
        ids = sorted(i for i in self.items if i > after_id)[:limit]
        return [self._item(i) for i in ids]

    def items_by_fuzzy_name(self, query: str, limit: int) -> list[Item]:
        self._record("items_by_fuzzy_name")
        needle = query.lower()
        ids = [i for i in sorted(self.items) if needle in self.items[i].split(" ", 1)[-1].lower()]
        return [self._item(i) for i in ids[:limit]]

    def first_recipe_for(self, item_id: int) -> tuple[Item, Item] | None:
        self._record("first_recipe_for")
        candidates = [(first, second) for result, first, second in self.recipes if result == item_id]
        if not candidates:
            return None
        first, second = min(candidates, key=lambda pair: (pair[0], -pair[1]))
        return self._item(first), self._item(second)


SAMPLE_ITEMS = {
    1: "💧 Water",
    2: "🔥 Fire",
    3: "🌬️ Wind",
    4: "🌍 Earth",
    5: "💨 Steam",
    6: "🌋 Lava",
    7: "🪨 Stone",
    8: "☁️ Cloud",
    9: "🌊 Ocean",
}

SAMPLE_RECIPES = [
    (5, 1, 2),
    (6, 2, 4),
    (7, 6, 1),
    (8, 5, 3),
    (8, 5, 1),
    (9, 1, 1),
]


@pytest.fixture
def fake_store() -> FakeItemStore:
    return FakeItemStore(SAMPLE_ITEMS, SAMPLE_RECIPES)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with per-group overrides.

    Rate limiting stays enabled but with a large burst unless a test
    overrides it.
    """

    def _make(
        *,
        app: dict[str, Any] | None = None,
        cache: dict[str, Any] | None = None,
        recipe: dict[str, Any] | None = None,
    ) -> Settings:
        app_values = {"rate_limit_burst": 1000, "static_dir": "does-not-exist"}
        app_values.update(app or {})
        return Settings(
            app=AppSettings(**app_values),
            cache=CacheSettings(**(cache or {})),
            recipe=RecipeSettings(**(recipe or {})),
        )

    return _make


@pytest.fixture
def build_client(make_settings) -> Iterator[Callable[..., TestClient]]:
    """Start an app around a store; the lifespan (warm-up) runs on entry."""

    clients: list[TestClient] = []

    def _build(store: AbstractItemStore, **overrides: Any) -> TestClient:
        app = create_app(
            config=make_settings(**overrides),
            item_store=store,
            configure_logs=False,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _build

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(fake_store: FakeItemStore, build_client) -> TestClient:
    return build_client(fake_store)
