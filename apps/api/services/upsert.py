"""Dialect-aware single-statement upsert."""

from __future__ import annotations

from typing import Any, Dict, Iterable

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def upsert_statement(
    db: AsyncSession,
    model: Any,
    values: Dict[str, Any],
    *,
    index_elements: Iterable[str],
    update_columns: Iterable[str],
):
    """
    INSERT ... ON CONFLICT (index_elements) DO UPDATE for PostgreSQL and SQLite.

    A single statement avoids the race between a failed update and a
    concurrent insert on the same natural key.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql_insert
    elif dialect == "sqlite":
        insert = sqlite_insert
    else:
        raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")

    statement = insert(model).values(**values)
    return statement.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={column: getattr(statement.excluded, column) for column in update_columns},
    )
