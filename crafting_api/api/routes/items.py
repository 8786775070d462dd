"""Catalog API endpoints.

All routes live under ``/api`` and pass the per-client rate limiter before
the handler runs. Handlers are plain functions, so FastAPI runs each request
on its own worker thread.
"""

from __future__ import annotations

import re

from fastapi import APIRouter, Depends, Query, Request, Response

from crafting_api.core.errors import ValidationAppError
from crafting_api.core.rate_limit import enforce_rate_limit
from crafting_api.schemas.items import dump_recipe_rows
from crafting_api.services.catalog_service import CatalogService
from crafting_api.services.recipe_service import RecipeService

router = APIRouter(
    prefix="/api",
    tags=["Items"],
    dependencies=[Depends(enforce_rate_limit)],
)

JSON_MEDIA_TYPE = "application/json"

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def parse_int_param(name: str, raw: str | None) -> int:
    """Parse a required signed 64-bit integer query parameter.

    Raises:
        ValidationAppError: If the value is missing, not a plain decimal
            integer, or out of range.
    """
    if raw is None or not _INT_PATTERN.fullmatch(raw):
        raise ValidationAppError(
            code="invalid_parameter",
            message=f"Invalid {name} parameter",
            details={"parameter": name, "value": (raw or "")[:64]},
        )

    value = int(raw)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValidationAppError(
            code="invalid_parameter",
            message=f"Invalid {name} parameter",
            details={"parameter": name, "value": raw[:64]},
        )
    return value


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_recipe_service(request: Request) -> RecipeService:
    return request.app.state.recipes


def _json(payload: bytes) -> Response:
    return Response(content=payload, media_type=JSON_MEDIA_TYPE)


@router.get("/getTotalItems")
def get_total_items(catalog: CatalogService = Depends(get_catalog_service)) -> Response:
    """Return ``{"Total": <count>}`` from the periodically refreshed cache."""
    return _json(catalog.total_items_payload())


@router.get("/getNextItems")
def get_next_items(
    after: str | None = Query(None, description="Return items with id greater than this cursor"),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Response:
    """Return the next page of ``[id, text]`` rows after the ``after`` cursor."""
    after_id = parse_int_param("after", after)
    return _json(catalog.next_items_payload(after_id))


@router.get("/getItemsFuzzy")
def get_items_fuzzy(
    query: str = Query("", description="Case-insensitive substring of the item name"),
    catalog: CatalogService = Depends(get_catalog_service),
) -> Response:
    """Return up to 50 ``[id, text]`` rows whose name contains ``query``."""
    return _json(catalog.fuzzy_items_payload(query))


@router.get("/getItemRecipe")
def get_item_recipe(
    item: str | None = Query(None, description="Id of the item to explain"),
    recipes: RecipeService = Depends(get_recipe_service),
) -> Response:
    """Return the recipe tree of ``item`` as ``[id, text, parent_id]`` rows.

    The root comes first with ``parent_id = -1``.
    """
    item_id = parse_int_param("item", item)
    return _json(dump_recipe_rows(recipes.resolve_recipe(item_id)))
