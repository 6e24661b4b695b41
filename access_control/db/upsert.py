from typing import Any, Dict, Iterable, List, Sequence, Union

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func


def dialect_insert(session: AsyncSession, model):
    """INSERT construct for the session's backend supporting ON CONFLICT"""
    bind = session.get_bind()
    dialect = bind.dialect.name if bind is not None else ""

    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")


async def upsert(
    session: AsyncSession,
    model,
    rows: Union[Dict[str, Any], Iterable[Dict[str, Any]]],
    index_elements: Sequence[str],
    update_fields: Sequence[str],
    index_where=None,
) -> int:
    """
    INSERT ... ON CONFLICT (index_elements) DO UPDATE SET update_fields.

    ``index_where`` targets a partial unique index. Does not commit; returns
    the number of rows written.
    """
    values: List[Dict[str, Any]] = [rows] if isinstance(rows, dict) else list(rows)
    if not values:
        return 0

    stmt = dialect_insert(session, model).values(values)
    set_ = {field: getattr(stmt.excluded, field) for field in update_fields}
    set_["updated_at"] = func.now()

    stmt = stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        index_where=index_where,
        set_=set_,
    )
    await session.execute(stmt)
    return len(values)
