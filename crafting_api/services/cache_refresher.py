"""Background thread keeping the total-count payload fresh."""

from __future__ import annotations

import logging
import threading

from crafting_api.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class TotalCountRefresher:
    """Recomputes the cached total count every ``interval_seconds``.

    The refresher is the only writer of the count slot. It sleeps first,
    since warm-up has just computed the value, and stops promptly when
    ``stop()`` is called.
    """

    def __init__(self, catalog: CatalogService, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._catalog = catalog
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="total-count-refresher", daemon=True
        )
        self._thread.start()
        logger.info("cache.refresher_started", extra={"interval_s": self._interval})

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("cache.refresher_stopped")

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._catalog.refresh_total()
            except Exception:
                # Keep the loop alive; the stale payload stays in place
                logger.exception("cache.refresher_error")
