from __future__ import annotations

from crafting_api.api.routes.health import router as health_router
from crafting_api.api.routes.items import router as items_router
from crafting_api.api.routes.pages import router as pages_router

__all__ = ["health_router", "items_router", "pages_router"]
