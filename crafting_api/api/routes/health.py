from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check, exempt from rate limiting.

    Reports the read-through cache state alongside the status so operators
    can see which listing pages were warmed and whether the count refresher
    is alive.
    """

    refresher = getattr(request.app.state, "refresher", None)
    return {
        "status": "ok",
        "cache": request.app.state.catalog.cache.stats(),
        "refresher_running": bool(refresher and refresher.running),
    }
