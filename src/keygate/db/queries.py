"""Common query helpers."""

from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.db.session import Base

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def paginate(
    session: AsyncSession,
    stmt: Select,
    offset: int = 0,
    limit: int = 50,
) -> tuple[Sequence[Any], int]:
    """Execute a paginated query, returning (items, total_count)."""
    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await session.execute(count_stmt)).scalar() or 0
    result = await session.execute(stmt.offset(offset).limit(limit))
    items = result.scalars().all()
    return items, total


async def insert_if_absent(
    session: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    conflict_columns: list[str],
) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True if a row was created.

    Safe under concurrent callers: losers of the race see rowcount 0 instead
    of an IntegrityError that would poison the surrounding transaction.
    """
    dialect = session.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"insert_if_absent does not support dialect {dialect!r}")
    stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
    result = await session.execute(stmt)
    return result.rowcount == 1
