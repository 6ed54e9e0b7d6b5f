"""Engine-specific hooks used by the restore and clear executors.

The executors are written once against ``StoreDialect``; each supported
engine supplies the few statements that cannot be expressed portably:

- turning referential-integrity enforcement off and on
- resetting and re-syncing auto-increment state
- isolating a single statement that is allowed to fail

SQLite (the shop's embedded store) and PostgreSQL (hosted deployments) are
supported.

Usage:
    from pos_backup.adapters.dialects import dialect_for_url

    dialect = dialect_for_url("sqlite+aiosqlite:///pos-data.db")
    await dialect.disable_constraints(conn)
"""

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

logger = logging.getLogger(__name__)


def quote_identifier(name: str) -> str:
    """Double-quote an identifier (valid on both SQLite and PostgreSQL)."""
    return '"' + name.replace('"', '""') + '"'


class StoreDialect:
    """Base dialect: no-op hooks, overridden per engine."""

    name: str = "generic"

    # Whether temporal/numeric values must be bound as native Python objects
    # (datetime, Decimal) instead of their ISO/str text form.
    native_temporals: bool = False

    async def disable_constraints(self, conn: AsyncConnection) -> None:
        """Suspend foreign-key enforcement for the current transaction."""

    async def enable_constraints(self, conn: AsyncConnection) -> None:
        """Resume foreign-key enforcement for the current transaction."""

    async def reset_session(self, conn: AsyncConnection) -> None:
        """Restore per-connection state after the transaction has ended."""

    async def reset_sequences(self, conn: AsyncConnection, tables: Iterable[str]) -> None:
        """Forget auto-increment high-water marks for ``tables``."""

    async def sync_sequences(self, conn: AsyncConnection, tables: Iterable[str]) -> None:
        """Advance auto-increment state past the ids currently stored."""

    @asynccontextmanager
    async def statement_guard(self, conn: AsyncConnection) -> AsyncIterator[None]:
        """Isolate one statement that may fail without poisoning the transaction."""
        yield


class SqliteDialect(StoreDialect):
    """SQLite: ``PRAGMA foreign_keys`` and the ``sqlite_sequence`` table.

    ``PRAGMA foreign_keys`` is only honored outside a transaction, so it must
    be the first statement on a connection; the sqlite3 driver does not open
    its implicit transaction until the first DML statement.  A failed
    statement does not abort an SQLite transaction, so no savepoint is needed.
    """

    name = "sqlite"
    native_temporals = False

    async def disable_constraints(self, conn: AsyncConnection) -> None:
        await conn.exec_driver_sql("PRAGMA foreign_keys = OFF")

    async def enable_constraints(self, conn: AsyncConnection) -> None:
        await conn.exec_driver_sql("PRAGMA foreign_keys = ON")

    async def reset_session(self, conn: AsyncConnection) -> None:
        # No-op inside a transaction; re-applied here once it has ended
        await conn.exec_driver_sql("PRAGMA foreign_keys = ON")

    async def reset_sequences(self, conn: AsyncConnection, tables: Iterable[str]) -> None:
        result = await conn.execute(
            text(
                "SELECT name FROM sqlite_master "
                "WHERE type = 'table' AND name = 'sqlite_sequence'"
            )
        )
        if result.first() is None:
            # No AUTOINCREMENT table has ever been created
            return
        for table in tables:
            await conn.execute(
                text("DELETE FROM sqlite_sequence WHERE name = :name"),
                {"name": table},
            )


class PostgresDialect(StoreDialect):
    """PostgreSQL: replica session role, serial sequences, and savepoints.

    ``session_replication_role = replica`` suppresses foreign-key triggers
    and requires a superuser (or table owner on managed services).  A failed
    statement aborts a PostgreSQL transaction, so every fallible statement
    runs under a SAVEPOINT.
    """

    name = "postgresql"
    native_temporals = True

    async def disable_constraints(self, conn: AsyncConnection) -> None:
        await self._set_replication_role(conn, "replica")

    async def enable_constraints(self, conn: AsyncConnection) -> None:
        await self._set_replication_role(conn, "origin")

    async def _set_replication_role(self, conn: AsyncConnection, role: str) -> None:
        """Switch the role; without the privilege, dependency order alone applies."""
        try:
            async with self.statement_guard(conn):
                await conn.exec_driver_sql(f"SET LOCAL session_replication_role = '{role}'")
        except DBAPIError as e:
            logger.warning("Could not set session_replication_role=%s: %s", role, e.orig)

    async def reset_sequences(self, conn: AsyncConnection, tables: Iterable[str]) -> None:
        for table in tables:
            await self._setval(
                conn,
                table,
                "SELECT setval(pg_get_serial_sequence(:table, 'id'), 1, false) "
                "WHERE pg_get_serial_sequence(:table, 'id') IS NOT NULL",
            )

    async def sync_sequences(self, conn: AsyncConnection, tables: Iterable[str]) -> None:
        for table in tables:
            await self._setval(
                conn,
                table,
                "SELECT setval(pg_get_serial_sequence(:table, 'id'), "
                f"COALESCE((SELECT MAX(id) FROM {quote_identifier(table)}), 0) + 1, "
                "false) "
                "WHERE pg_get_serial_sequence(:table, 'id') IS NOT NULL",
            )

    async def _setval(self, conn: AsyncConnection, table: str, sql: str) -> None:
        """Run one sequence statement; tables without a serial ``id`` are skipped."""
        try:
            async with self.statement_guard(conn):
                await conn.execute(text(sql), {"table": quote_identifier(table)})
        except DBAPIError as e:
            logger.warning("Could not reset sequence for %s: %s", table, e.orig)

    @asynccontextmanager
    async def statement_guard(self, conn: AsyncConnection) -> AsyncIterator[None]:
        async with conn.begin_nested():
            yield


def dialect_for_url(url: str) -> StoreDialect:
    """Pick the dialect hooks for a (normalized or raw) connection URL.

    Args:
        url: Connection URL, e.g. ``sqlite+aiosqlite:///pos.db`` or
            ``postgresql+asyncpg://user@host/db``.

    Returns:
        ``SqliteDialect`` or ``PostgresDialect``.

    Raises:
        ValueError: If the URL scheme is not a supported engine.
    """
    scheme = url.split("://", 1)[0].split("+", 1)[0].lower()
    if scheme == "sqlite":
        return SqliteDialect()
    if scheme in ("postgres", "postgresql"):
        return PostgresDialect()
    raise ValueError(f"Unsupported database URL scheme: {scheme!r}")
