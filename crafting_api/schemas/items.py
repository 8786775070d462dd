"""Pydantic schemas and serializers for catalog responses.

Listing and recipe endpoints answer with compact JSON arrays rather than
objects (``[[id, text], ...]`` and ``[[id, text, parent_id], ...]``), so
they are serialized through TypeAdapters straight to bytes.
"""

from __future__ import annotations

from typing import Iterable

from pydantic import BaseModel, Field, TypeAdapter
from pydantic_core import PydanticSerializationError

from crafting_api.adapters.storage.base import Item
from crafting_api.core.errors import SerializationAppError
from crafting_api.services.recipe_service import RecipeNode

ItemRows = list[tuple[int, str]]
RecipeRows = list[tuple[int, str, int]]

_item_rows_adapter: TypeAdapter[ItemRows] = TypeAdapter(ItemRows)
_recipe_rows_adapter: TypeAdapter[RecipeRows] = TypeAdapter(RecipeRows)


class TotalItemsResponse(BaseModel):
    """Body of ``getTotalItems``."""

    total: int = Field(
        ...,
        ge=0,
        serialization_alias="Total",
        description="Number of items in the catalog.",
    )


def _serialization_failed(what: str, exc: Exception) -> SerializationAppError:
    return SerializationAppError(
        code="serialization_error",
        message=f"Unable to serialize {what}: {exc}",
        details={"operation": what},
    )


def dump_item_rows(items: Iterable[Item]) -> bytes:
    try:
        return _item_rows_adapter.dump_json([item.as_row() for item in items])
    except PydanticSerializationError as exc:
        raise _serialization_failed("items", exc) from exc


def dump_recipe_rows(nodes: Iterable[RecipeNode]) -> bytes:
    try:
        return _recipe_rows_adapter.dump_json([node.as_row() for node in nodes])
    except PydanticSerializationError as exc:
        raise _serialization_failed("recipe", exc) from exc


def dump_total_items(total: int) -> bytes:
    try:
        return TotalItemsResponse(total=total).model_dump_json(by_alias=True).encode()
    except PydanticSerializationError as exc:
        raise _serialization_failed("total items", exc) from exc
