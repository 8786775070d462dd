"""Catalog listing, search and count payloads behind the read-through cache.

The service builds JSON payloads from the catalog store and decides when a
cached payload can be served instead:

- ``warm_cache()`` runs once before serving: it computes the total count and
  the leading listing pages, then freezes the page map.
- ``refresh_total()`` recomputes the total count; the background refresher
  calls it on a fixed interval.
- Page misses and an empty count slot are answered live and never inserted.
"""

from __future__ import annotations

import logging

from crafting_api.adapters.storage.base import AbstractItemStore
from crafting_api.core.config import CacheSettings
from crafting_api.core.errors import AppError
from crafting_api.schemas.items import dump_item_rows, dump_total_items
from crafting_api.utils.payload_cache import PayloadCache

logger = logging.getLogger(__name__)


class CatalogService:
    """Serves catalog payloads, preferring cached bytes when available."""

    def __init__(
        self,
        store: AbstractItemStore,
        cache: PayloadCache,
        cache_settings: CacheSettings,
        *,
        fuzzy_limit: int = 50,
    ) -> None:
        self._store = store
        self._cache = cache
        self._page_size = cache_settings.page_size
        self._warm_pages = cache_settings.warm_pages
        self._discard_boundary_page = cache_settings.discard_boundary_page
        self._fuzzy_limit = fuzzy_limit

    @property
    def cache(self) -> PayloadCache:
        return self._cache

    @property
    def page_size(self) -> int:
        return self._page_size

    def warm_cursors(self) -> list[int]:
        """Cursors cached at startup: ``0, page_size, 2 * page_size, ...``."""
        return [idx * self._page_size for idx in range(self._warm_pages)]

    def build_total_items(self) -> bytes:
        return dump_total_items(self._store.total_item_count())

    def build_next_items(self, after_id: int) -> bytes:
        return dump_item_rows(self._store.item_batch(self._page_size, after_id))

    def warm_cache(self) -> None:
        """Populate the count slot and the leading pages, then freeze pages.

        A failing count query is logged and left for the refresher; a failing
        page query aborts startup.
        """
        self.refresh_total()

        cursors = self.warm_cursors()
        for idx, after_id in enumerate(cursors):
            items = self._store.item_batch(self._page_size, after_id)
            if not items:
                if self._discard_boundary_page and idx > 0:
                    # The page before the end may be incomplete; serve it live
                    self._cache.discard_page(cursors[idx - 1])
                    logger.info("cache.boundary_discarded", extra={"after_id": cursors[idx - 1]})
                break
            self._cache.stage_page(after_id, dump_item_rows(items))
            logger.info("cache.page_warmed", extra={"after_id": after_id, "items": len(items)})

        self._cache.freeze_pages()

    def refresh_total(self) -> bool:
        """Recompute the total-count payload.

        Returns:
            True when the cached payload was replaced, False when the refresh
            failed and the previous value was kept.
        """
        try:
            payload = self.build_total_items()
        except AppError as exc:
            logger.error(
                "cache.total_refresh_failed",
                extra={"error_code": exc.code, "error_msg": exc.message},
            )
            return False

        self._cache.set_total(payload)
        logger.debug("cache.total_refreshed")
        return True

    def total_items_payload(self) -> bytes:
        cached = self._cache.get_total()
        if cached is not None:
            return cached
        return self.build_total_items()

    def next_items_payload(self, after_id: int) -> bytes:
        cached = self._cache.get_page(after_id)
        if cached is not None:
            return cached
        return self.build_next_items(after_id)

    def fuzzy_items_payload(self, query: str) -> bytes:
        return dump_item_rows(self._store.items_by_fuzzy_name(query, self._fuzzy_limit))
