"""
Dialect-specific INSERT for ``ON CONFLICT DO NOTHING`` writes.
"""
from sqlalchemy import Table
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def conflict_aware_insert(db: AsyncSession, table: Table):
    """An INSERT for ``table`` that supports ``on_conflict_do_nothing``."""
    dialect_name = db.get_bind().dialect.name
    try:
        insert = _INSERT_BY_DIALECT[dialect_name]
    except KeyError:
        raise ValueError(
            f"INSERT ... ON CONFLICT is not supported on dialect: {dialect_name}"
        ) from None
    return insert(table)
