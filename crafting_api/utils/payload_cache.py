"""In-memory store of pre-serialized JSON payloads.

Two kinds of entries:

- Page payloads keyed by cursor (``afterId``). Filled once during warm-up,
  then frozen into a read-only mapping before the server accepts requests.
- A single total-count payload, replaced wholesale by the background
  refresher and read concurrently by request threads.

Values are opaque bytes; the cache never decodes or mutates them.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Mapping

logger = logging.getLogger(__name__)


class PayloadCache:
    """Thread-safe holder for page and total-count payloads."""

    def __init__(self) -> None:
        self._pending_pages: dict[int, bytes] | None = {}
        self._pages: Mapping[int, bytes] = MappingProxyType({})
        self._total: bytes | None = None
        self._lock = threading.Lock()
        self._page_hits = 0
        self._page_misses = 0
        self._total_updates = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"PayloadCache(pages={len(self._pages)}, frozen={self.frozen}, "
            f"has_total={self._total is not None})"
        )

    @property
    def frozen(self) -> bool:
        return self._pending_pages is None

    @property
    def pages(self) -> Mapping[int, bytes]:
        """Read-only view of the frozen page payloads."""
        return self._pages

    def stage_page(self, after_id: int, payload: bytes) -> None:
        """Add a page payload during warm-up.

        Raises:
            RuntimeError: If the page map has already been frozen.
        """
        if self._pending_pages is None:
            raise RuntimeError("page cache is frozen")
        self._pending_pages[after_id] = payload

    def discard_page(self, after_id: int) -> None:
        """Remove a staged page payload during warm-up."""
        if self._pending_pages is None:
            raise RuntimeError("page cache is frozen")
        self._pending_pages.pop(after_id, None)

    def freeze_pages(self) -> None:
        """Publish the staged pages as an immutable mapping."""
        if self._pending_pages is None:
            return
        self._pages = MappingProxyType(dict(self._pending_pages))
        self._pending_pages = None
        logger.info("cache.pages_frozen", extra={"cursors": sorted(self._pages)})

    def get_page(self, after_id: int) -> bytes | None:
        payload = self._pages.get(after_id)
        with self._lock:
            if payload is None:
                self._page_misses += 1
            else:
                self._page_hits += 1
        logger.debug(
            "cache.hit" if payload is not None else "cache.miss",
            extra={"cache_key": after_id},
        )
        return payload

    def get_total(self) -> bytes | None:
        with self._lock:
            return self._total

    def set_total(self, payload: bytes) -> None:
        with self._lock:
            self._total = payload
            self._total_updates += 1

    def stats(self) -> dict[str, object]:
        """Return lightweight cache metrics without exposing values."""
        with self._lock:
            return {
                "cursors": sorted(self._pages),
                "frozen": self.frozen,
                "page_hits": self._page_hits,
                "page_misses": self._page_misses,
                "has_total": self._total is not None,
                "total_updates": self._total_updates,
            }
