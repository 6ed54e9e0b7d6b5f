"""Live schema catalog reader.

Answers three questions about the store as it is *right now*: which tables
exist, which columns a table has (in storage order), and whether a table
exists.  Nothing is cached between calls; every call builds a fresh
SQLAlchemy ``Inspector`` on the caller's connection so that the answer
reflects the schema inside the caller's transaction.

Works on any engine SQLAlchemy can reflect (SQLite, PostgreSQL).

Usage:
    from pos_backup.schema.catalog import LiveSchemaCatalog

    async with store.connect() as conn:
        catalog = LiveSchemaCatalog(conn)
        if await catalog.has_table("products"):
            columns = await catalog.columns_of("products")
"""

import logging
from typing import Any, Protocol

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.exc import CompileError
from sqlalchemy.ext.asyncio import AsyncConnection

from pos_backup.schema.models import ColumnDescriptor

logger = logging.getLogger(__name__)


class SchemaCatalog(Protocol):
    """Runtime schema reflection consumed by the snapshot/restore executors."""

    async def table_names(self) -> set[str]:
        """Names of all user tables in the store."""
        ...

    async def columns_of(self, table: str) -> list[ColumnDescriptor]:
        """Columns of ``table`` in storage order (empty if it does not exist)."""
        ...

    async def has_table(self, table: str) -> bool:
        """Whether ``table`` exists."""
        ...


class LiveSchemaCatalog:
    """``SchemaCatalog`` backed by SQLAlchemy reflection on an open connection.

    Args:
        conn: Open async connection.  When used inside a restore, pass the
            transaction's connection so reflection sees the same snapshot.
    """

    # Engine bookkeeping tables that are never user data
    EXCLUDED_TABLES = {
        "sqlite_sequence",
        "sqlite_stat1",
        "schema_migrations",
        "spatial_ref_sys",
    }

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def table_names(self) -> set[str]:
        names = await self._conn.run_sync(_reflect_table_names)
        return {name for name in names if name not in self.EXCLUDED_TABLES}

    async def columns_of(self, table: str) -> list[ColumnDescriptor]:
        return await self._conn.run_sync(_reflect_columns, table)

    async def has_table(self, table: str) -> bool:
        if table in self.EXCLUDED_TABLES:
            return False
        return await self._conn.run_sync(_reflect_has_table, table)


class StaticSchemaCatalog:
    """In-memory ``SchemaCatalog`` for tests and offline planning.

    Example:
        >>> catalog = StaticSchemaCatalog({
        ...     "categories": [ColumnDescriptor(name="id", primary_key=True)],
        ... })
    """

    def __init__(self, tables: dict[str, list[ColumnDescriptor]]) -> None:
        self._tables = tables

    async def table_names(self) -> set[str]:
        return set(self._tables)

    async def columns_of(self, table: str) -> list[ColumnDescriptor]:
        return list(self._tables.get(table, []))

    async def has_table(self, table: str) -> bool:
        return table in self._tables


# ------------------------------------------------------------------
# Sync reflection helpers (run inside ``AsyncConnection.run_sync``)
# ------------------------------------------------------------------


def _reflect_table_names(sync_conn: Connection) -> list[str]:
    return inspect(sync_conn).get_table_names()


def _reflect_has_table(sync_conn: Connection, table: str) -> bool:
    return inspect(sync_conn).has_table(table)


def _reflect_columns(sync_conn: Connection, table: str) -> list[ColumnDescriptor]:
    inspector = inspect(sync_conn)
    if not inspector.has_table(table):
        return []

    pk = inspector.get_pk_constraint(table)
    pk_columns = set(pk.get("constrained_columns") or [])

    return [
        ColumnDescriptor(
            name=column["name"],
            declared_type=_render_type(column["type"]),
            nullable=bool(column.get("nullable", True)),
            default=_render_default(column.get("default")),
            primary_key=column["name"] in pk_columns,
        )
        for column in inspector.get_columns(table)
    ]


def _render_type(sql_type: Any) -> str:
    """Render a reflected type as its DDL text; falls back to the class name."""
    try:
        return str(sql_type)
    except CompileError:
        logger.debug("Could not compile reflected type %r", sql_type)
        return type(sql_type).__name__.upper()


def _render_default(default: Any) -> str | None:
    if default is None:
        return None
    return str(default)
