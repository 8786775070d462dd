"""Landing page and catch-all routes.

``/assets`` is mounted separately by the app factory, before this router, so
the catch-all only sees paths nothing else claimed.
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, PlainTextResponse, Response

router = APIRouter(include_in_schema=False)

NOT_FOUND_BODY = "404 Not Found"


def _not_found() -> PlainTextResponse:
    return PlainTextResponse(NOT_FOUND_BODY, status_code=404)


@router.get("/")
def index(request: Request) -> Response:
    """Serve the landing document from the configured static directory."""
    index_path = Path(request.app.state.settings.app.static_dir) / "index.html"
    if not index_path.is_file():
        return _not_found()
    return FileResponse(index_path, media_type="text/html")


@router.get("/{path:path}")
def not_found(path: str) -> PlainTextResponse:
    return _not_found()
