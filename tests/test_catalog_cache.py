"""Tests for the payload cache, cache warm-up and the count refresher."""

from __future__ import annotations

import json
import threading
import time

import pytest

from crafting_api.core.config import CacheSettings
from crafting_api.core.errors import StorageAppError
from crafting_api.services.cache_refresher import TotalCountRefresher
from crafting_api.services.catalog_service import CatalogService
from crafting_api.utils.payload_cache import PayloadCache

from conftest import FakeItemStore


def _store_with(count: int) -> FakeItemStore:
    return FakeItemStore({i: f"🧪 Item{i}" for i in range(1, count + 1)})


def _catalog(store: FakeItemStore, **cache_overrides) -> CatalogService:
    values = {"page_size": 10, "warm_pages": 5}
    values.update(cache_overrides)
    return CatalogService(store, PayloadCache(), CacheSettings(**values), fuzzy_limit=50)


class TestPayloadCache:
    def test_pages_are_read_only_after_freeze(self) -> None:
        cache = PayloadCache()
        cache.stage_page(0, b"[]")
        cache.freeze_pages()

        assert cache.frozen is True
        assert cache.get_page(0) == b"[]"
        with pytest.raises(TypeError):
            cache.pages[10] = b"[]"  # type: ignore[index]
        with pytest.raises(RuntimeError):
            cache.stage_page(10, b"[]")

    def test_staged_pages_are_not_visible_before_freeze(self) -> None:
        cache = PayloadCache()
        cache.stage_page(0, b"[[1,\"a\"]]")

        assert cache.get_page(0) is None

    def test_total_slot_is_replaced_wholesale(self) -> None:
        cache = PayloadCache()
        assert cache.get_total() is None

        cache.set_total(b'{"Total":1}')
        cache.set_total(b'{"Total":2}')

        assert cache.get_total() == b'{"Total":2}'
        assert cache.stats()["total_updates"] == 2

    def test_concurrent_readers_see_whole_payloads(self) -> None:
        cache = PayloadCache()
        payloads = {b'{"Total":%d}' % i for i in range(200)}
        seen: list[bytes | None] = []

        def _writer() -> None:
            for payload in sorted(payloads):
                cache.set_total(payload)

        def _reader() -> None:
            for _ in range(200):
                seen.append(cache.get_total())

        threads = [threading.Thread(target=_writer)] + [
            threading.Thread(target=_reader) for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(value is None or value in payloads for value in seen)

    def test_stats_count_hits_and_misses(self) -> None:
        cache = PayloadCache()
        cache.stage_page(0, b"[]")
        cache.freeze_pages()

        cache.get_page(0)
        cache.get_page(5)

        stats = cache.stats()
        assert stats["cursors"] == [0]
        assert stats["page_hits"] == 1
        assert stats["page_misses"] == 1


class TestWarmUp:
    def test_warms_count_and_leading_pages(self) -> None:
        store = _store_with(100)
        catalog = _catalog(store)

        catalog.warm_cache()

        assert sorted(catalog.cache.pages) == [0, 10, 20, 30, 40]
        assert json.loads(catalog.cache.get_total()) == {"Total": 100}
        first_page = json.loads(catalog.cache.pages[10])
        assert [row[0] for row in first_page] == list(range(11, 21))

    def test_boundary_page_is_discarded_by_default(self) -> None:
        store = _store_with(25)
        catalog = _catalog(store)

        catalog.warm_cache()

        # Cursor 30 is empty, so cursor 20 (ids 21-25) is dropped as well
        assert sorted(catalog.cache.pages) == [0, 10]
        assert store.calls["item_batch"] == 4

    def test_boundary_page_is_kept_when_configured(self) -> None:
        store = _store_with(25)
        catalog = _catalog(store, discard_boundary_page=False)

        catalog.warm_cache()

        assert sorted(catalog.cache.pages) == [0, 10, 20]

    def test_empty_catalog_caches_no_pages(self) -> None:
        store = _store_with(0)
        catalog = _catalog(store)

        catalog.warm_cache()

        assert dict(catalog.cache.pages) == {}
        assert json.loads(catalog.cache.get_total()) == {"Total": 0}
        assert catalog.cache.frozen is True

    def test_zero_warm_pages_only_warms_count(self) -> None:
        store = _store_with(5)
        catalog = _catalog(store, warm_pages=0)

        catalog.warm_cache()

        assert dict(catalog.cache.pages) == {}
        assert store.calls["item_batch"] == 0

    def test_count_failure_does_not_abort_warm_up(self) -> None:
        store = _store_with(5)
        store.fail.add("total_item_count")
        catalog = _catalog(store, discard_boundary_page=False)

        catalog.warm_cache()

        assert catalog.cache.get_total() is None
        assert sorted(catalog.cache.pages) == [0]

    def test_page_failure_aborts_warm_up(self) -> None:
        store = _store_with(5)
        store.fail.add("item_batch")
        catalog = _catalog(store)

        with pytest.raises(StorageAppError):
            catalog.warm_cache()


class TestReadThrough:
    def test_page_miss_is_served_live_and_not_inserted(self) -> None:
        store = _store_with(100)
        catalog = _catalog(store, warm_pages=1)
        catalog.warm_cache()
        calls_after_warm = store.calls["item_batch"]

        first = json.loads(catalog.next_items_payload(95))
        second = json.loads(catalog.next_items_payload(95))

        assert [row[0] for row in first] == [96, 97, 98, 99, 100]
        assert first == second
        assert store.calls["item_batch"] == calls_after_warm + 2
        assert 95 not in catalog.cache.pages

    def test_page_hit_skips_storage(self) -> None:
        store = _store_with(100)
        catalog = _catalog(store)
        catalog.warm_cache()
        calls_after_warm = store.calls["item_batch"]

        catalog.next_items_payload(10)

        assert store.calls["item_batch"] == calls_after_warm

    def test_total_is_served_from_cache_until_refreshed(self) -> None:
        store = _store_with(3)
        catalog = _catalog(store)
        catalog.warm_cache()

        store.items[4] = "🧪 Item4"
        assert json.loads(catalog.total_items_payload()) == {"Total": 3}

        assert catalog.refresh_total() is True
        assert json.loads(catalog.total_items_payload()) == {"Total": 4}

    def test_failed_refresh_keeps_stale_total(self) -> None:
        store = _store_with(3)
        catalog = _catalog(store)
        catalog.warm_cache()
        store.fail.add("total_item_count")

        assert catalog.refresh_total() is False
        assert json.loads(catalog.total_items_payload()) == {"Total": 3}

    def test_empty_total_slot_falls_back_to_storage(self) -> None:
        store = _store_with(7)
        catalog = _catalog(store)

        assert json.loads(catalog.total_items_payload()) == {"Total": 7}
        assert catalog.cache.get_total() is None


class TestRefresher:
    def test_refresher_updates_total_periodically(self) -> None:
        store = _store_with(1)
        catalog = _catalog(store)
        catalog.warm_cache()
        refresher = TotalCountRefresher(catalog, interval_seconds=0.01)

        store.items[2] = "🧪 Item2"
        refresher.start()
        try:
            deadline = time.monotonic() + 5
            while time.monotonic() < deadline:
                if json.loads(catalog.cache.get_total()) == {"Total": 2}:
                    break
                time.sleep(0.01)
        finally:
            refresher.stop()

        assert json.loads(catalog.cache.get_total()) == {"Total": 2}
        assert refresher.running is False

    def test_refresher_survives_failures(self) -> None:
        store = _store_with(1)
        catalog = _catalog(store)
        catalog.warm_cache()
        store.fail.add("total_item_count")
        refresher = TotalCountRefresher(catalog, interval_seconds=0.01)

        refresher.start()
        try:
            deadline = time.monotonic() + 5
            while store.calls["total_item_count"] < 4 and time.monotonic() < deadline:
                time.sleep(0.01)
            assert refresher.running is True
        finally:
            refresher.stop()

        assert json.loads(catalog.cache.get_total()) == {"Total": 1}

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            TotalCountRefresher(_catalog(_store_with(1)), interval_seconds=0)
