"""Database utility functions for cross-database compatibility."""

from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(session: AsyncSession, model: Any):
    """
    Return the dialect-specific INSERT construct for the session's engine.

    Both PostgreSQL and SQLite expose ON CONFLICT DO NOTHING / DO UPDATE
    and RETURNING, so upserts stay a single atomic statement everywhere.
    """
    dialect = session.bind.dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported for dialect {dialect!r}")


def upsert_statement(
    session: AsyncSession,
    model: Any,
    values: dict[str, Any],
    conflict_columns: list[str],
    update_columns: list[str] | None = None,
):
    """
    Build an INSERT ... ON CONFLICT statement.

    Args:
        session: AsyncSession instance (used to pick the dialect)
        model: SQLModel table class
        values: Dictionary of column values to insert/update
        conflict_columns: Columns of the unique constraint that detects conflicts
        update_columns: Columns to overwrite on conflict (defaults to all
            non-conflict columns; an empty list means DO NOTHING)

    Example:
        stmt = upsert_statement(
            session,
            Player,
            {"team_id": 3, "name": "Ana", "goals": 2, "assists": 1},
            conflict_columns=["team_id", "name"],
            update_columns=["goals", "assists"],
        )
        await session.execute(stmt)
    """
    if update_columns is None:
        update_columns = [k for k in values.keys() if k not in conflict_columns]

    stmt = dialect_insert(session, model).values(**values)

    if update_columns:
        update_dict = {col: getattr(stmt.excluded, col) for col in update_columns}
        return stmt.on_conflict_do_update(
            index_elements=conflict_columns,
            set_=update_dict,
        )
    return stmt.on_conflict_do_nothing(index_elements=conflict_columns)
