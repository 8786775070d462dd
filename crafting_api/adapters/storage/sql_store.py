"""SQLAlchemy Core implementation of the item catalog store.

The catalog ships as a SQLite file with two tables:

- ``items(id, text, emoji)``
- ``recipes(result, first, second)``: ``result`` is made from ``first`` and
  ``second``; several rows may share a result.

The engine pools connections, so the store can be shared by all request
threads. Every query error is wrapped in ``StorageAppError``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import (
    Column,
    Engine,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from crafting_api.adapters.storage.base import AbstractItemStore, Item, merge_display_text
from crafting_api.core.config import DatabaseSettings
from crafting_api.core.errors import StorageAppError

logger = logging.getLogger(__name__)

metadata = MetaData()

items_table = Table(
    "items",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("text", String, nullable=False),
    Column("emoji", String, nullable=False, default=""),
)

recipes_table = Table(
    "recipes",
    metadata,
    Column("result", Integer, nullable=False, index=True),
    Column("first", Integer, nullable=False),
    Column("second", Integer, nullable=False),
)


def _escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so the query matches literally."""
    return (
        value.replace(escape, escape * 2)
        .replace("%", f"{escape}%")
        .replace("_", f"{escape}_")
    )


def build_engine(database_url: str, *, echo: bool = False) -> Engine:
    """Create the engine for a database URL.

    In-memory SQLite needs a single shared connection, otherwise every pooled
    connection would see its own empty database.
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, echo=echo)


class SqlItemStore(AbstractItemStore):
    """Catalog store backed by a SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_schema(self) -> None:
        """Create the catalog tables when they do not exist yet."""
        metadata.create_all(self._engine)

    def dispose(self) -> None:
        self._engine.dispose()

    def _fetch(self, operation: str, statement: Any, **context: Any) -> list[Any]:
        try:
            with self._engine.connect() as conn:
                return list(conn.execute(statement))
        except SQLAlchemyError as exc:
            logger.error(
                "storage.query_failed",
                extra={
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    **context,
                },
            )
            raise StorageAppError(
                code="storage_error",
                message=f"{operation} failed: {exc}",
                details={"operation": operation},
            ) from exc

    def total_item_count(self) -> int:
        rows = self._fetch("total_item_count", select(func.count(items_table.c.id)))
        return int(rows[0][0])

    def item_by_id(self, item_id: int) -> Item | None:
        statement = select(
            items_table.c.id, items_table.c.text, items_table.c.emoji
        ).where(items_table.c.id == item_id)
        rows = self._fetch("item_by_id", statement, item_id=item_id)
        if not rows:
            return None
        row = rows[0]
        return Item(row.id, merge_display_text(row.emoji, row.text))

    def item_batch(self, limit: int, after_id: int) -> list[Item]:
        statement = (
            select(items_table.c.id, items_table.c.text, items_table.c.emoji)
            .where(items_table.c.id > after_id)
            .order_by(items_table.c.id)
            .limit(limit)
        )
        rows = self._fetch("item_batch", statement, after_id=after_id, limit=limit)
        return [Item(row.id, merge_display_text(row.emoji, row.text)) for row in rows]

    def items_by_fuzzy_name(self, query: str, limit: int) -> list[Item]:
        pattern = f"%{_escape_like(query)}%"
        statement = (
            select(items_table.c.id, items_table.c.text, items_table.c.emoji)
            .where(items_table.c.text.ilike(pattern, escape="\\"))
            .order_by(items_table.c.id)
            .limit(limit)
        )
        rows = self._fetch("items_by_fuzzy_name", statement, limit=limit)
        return [Item(row.id, merge_display_text(row.emoji, row.text)) for row in rows]

    def first_recipe_for(self, item_id: int) -> tuple[Item, Item] | None:
        first = items_table.alias("c1")
        second = items_table.alias("c2")
        statement = (
            select(
                first.c.id.label("first_id"),
                first.c.text.label("first_text"),
                first.c.emoji.label("first_emoji"),
                second.c.id.label("second_id"),
                second.c.text.label("second_text"),
                second.c.emoji.label("second_emoji"),
            )
            .select_from(
                recipes_table.join(first, first.c.id == recipes_table.c["first"]).join(
                    second, second.c.id == recipes_table.c["second"]
                )
            )
            .where(recipes_table.c["result"] == item_id)
            .order_by(recipes_table.c["first"], recipes_table.c["second"].desc())
            .limit(1)
        )
        rows = self._fetch("first_recipe_for", statement, item_id=item_id)
        if not rows:
            return None
        row = rows[0]
        return (
            Item(row.first_id, merge_display_text(row.first_emoji, row.first_text)),
            Item(row.second_id, merge_display_text(row.second_emoji, row.second_text)),
        )


def create_item_store(db_settings: DatabaseSettings) -> SqlItemStore:
    """Build the catalog store from configuration."""
    logger.info("storage.engine_created", extra={"dialect": db_settings.url.split(":", 1)[0]})
    return SqlItemStore(build_engine(db_settings.url, echo=db_settings.echo))
