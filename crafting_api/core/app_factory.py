from __future__ import annotations

"""Application factory for the catalog API.

Centralizes app construction (state, lifespan, middleware, handlers,
routers) so tests can build isolated apps around a fake store.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from crafting_api.adapters.storage.base import AbstractItemStore
from crafting_api.adapters.storage.sql_store import create_item_store
from crafting_api.api.routes import health_router, items_router, pages_router
from crafting_api.core.config import Settings, settings as default_settings
from crafting_api.core.exception_handlers import setup_exception_handlers
from crafting_api.core.logging import configure_logging
from crafting_api.core.middleware import request_id_middleware
from crafting_api.core.rate_limit import build_rate_limiter
from crafting_api.services.cache_refresher import TotalCountRefresher
from crafting_api.services.catalog_service import CatalogService
from crafting_api.services.recipe_service import RecipeService
from crafting_api.utils.payload_cache import PayloadCache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Warm the cache before serving and run the count refresher until shutdown."""
    catalog: CatalogService = app.state.catalog
    catalog.warm_cache()

    refresher = TotalCountRefresher(
        catalog, app.state.settings.cache.refresh_interval_seconds
    )
    app.state.refresher = refresher
    refresher.start()
    logger.info("app.started", extra={"cursors": sorted(catalog.cache.pages)})
    try:
        yield
    finally:
        refresher.stop()


def create_app(
    *,
    config: Settings | None = None,
    item_store: AbstractItemStore | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Settings to use; defaults to the environment-derived settings.
        item_store: Catalog store; defaults to the SQL store from ``config.db``.
        configure_logs: Install the root log handler (disabled by tests that
            capture logs themselves).

    Returns:
        Configured FastAPI app with state, middleware, handlers and routers.
    """
    cfg = config or default_settings

    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(cfg.log)

    store = item_store or create_item_store(cfg.db)

    app = FastAPI(
        title="Crafting Catalog API",
        description=(
            "Browse a catalog of crafted items, search them by name and explain "
            "how any item is built from base materials."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.store = store
    app.state.rate_limiter = build_rate_limiter(cfg.app)
    app.state.catalog = CatalogService(
        store,
        PayloadCache(),
        cfg.cache,
        fuzzy_limit=cfg.recipe.fuzzy_limit,
    )
    app.state.recipes = RecipeService(store, cfg.recipe.base_ids)
    app.state.refresher = None

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(items_router)
    app.include_router(health_router)

    assets_dir = Path(cfg.app.static_dir) / "assets"
    if assets_dir.is_dir():
        app.mount("/assets", StaticFiles(directory=assets_dir), name="assets")
    else:
        logger.warning("app.assets_missing", extra={"assets_dir": str(assets_dir)})
    # Catch-all last so it never shadows the routes above
    app.include_router(pages_router)

    return app
