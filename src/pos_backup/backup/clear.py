"""Clear-all: empty every known table, keeping the shop's identity settings.

Tables are emptied children-first inside one transaction with
foreign-key enforcement suspended.  A table that cannot be emptied is
logged and reported as a warning; the rest proceed.  The settings table is
cleared except for the allow-listed keys, so the shop does not fall back
into its first-run setup.

The deletion routine is shared with the restore executor.

Usage:
    from pos_backup.backup.clear import clear_all_data

    summary = await clear_all_data(store, DependencyPlanner())
    print(f"Cleared {summary.rows_cleared} rows from {summary.tables_cleared} tables")
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import bindparam, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from pos_backup.adapters.base import StoreClient
from pos_backup.adapters.dialects import StoreDialect, quote_identifier
from pos_backup.backup.errors import CONSTRAINT_VIOLATION, SCHEMA_MISMATCH
from pos_backup.backup.models import ClearSummary
from pos_backup.backup.planner import DependencyPlanner
from pos_backup.schema.catalog import LiveSchemaCatalog, SchemaCatalog

logger = logging.getLogger(__name__)

DEFAULT_PRESERVED_SETTING_KEYS: tuple[str, ...] = (
    "setup_completed",
    "business_name",
    "business_address",
    "business_phone",
    "business_email",
    "tax_id",
    "currency",
)


@dataclass
class SettingsPreservation:
    """Which settings rows survive a clear (and a restore without settings)."""

    table: str = "settings"
    key_column: str = "key"
    preserved_keys: list[str] = field(
        default_factory=lambda: list(DEFAULT_PRESERVED_SETTING_KEYS)
    )


@dataclass
class DeletionResult:
    """Outcome of ``delete_tables``."""

    tables_cleared: int = 0
    rows_cleared: int = 0
    emptied: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


async def delete_tables(
    conn: AsyncConnection,
    dialect: StoreDialect,
    catalog: SchemaCatalog,
    delete_order: list[str],
    settings: SettingsPreservation,
    preserve_settings: bool = True,
) -> DeletionResult:
    """Delete all rows from each table in ``delete_order``.

    Each DELETE runs under the dialect's statement guard; a failure is
    recorded and the next table is attempted.

    Args:
        conn: Connection inside the caller's transaction.
        dialect: Engine hooks for the connection.
        catalog: Live catalog on ``conn``.
        delete_order: Tables to empty, children first.
        settings: Settings preservation rule.
        preserve_settings: Keep the allow-listed settings rows.

    Returns:
        ``DeletionResult``; ``emptied`` excludes a settings table that kept
        rows, so its sequence is not reset underneath them.
    """
    outcome = DeletionResult()

    for table in delete_order:
        keep_settings = preserve_settings and table == settings.table
        statement = text(f"DELETE FROM {quote_identifier(table)}")
        params: dict = {}

        if keep_settings:
            live_columns = {c.name for c in await catalog.columns_of(table)}
            if settings.key_column in live_columns and settings.preserved_keys:
                statement = text(
                    f"DELETE FROM {quote_identifier(table)} "
                    f"WHERE {quote_identifier(settings.key_column)} NOT IN :keys"
                ).bindparams(bindparam("keys", expanding=True))
                params = {"keys": list(settings.preserved_keys)}
            else:
                keep_settings = False
                outcome.warnings.append(
                    f"{SCHEMA_MISMATCH}: {table} has no {settings.key_column!r} column; "
                    f"no settings were preserved"
                )

        try:
            async with dialect.statement_guard(conn):
                result = await conn.execute(statement, params)
        except DBAPIError as e:
            logger.warning("Could not clear %s: %s", table, e.orig)
            outcome.warnings.append(f"{CONSTRAINT_VIOLATION}: could not clear {table}: {e.orig}")
            continue

        deleted = max(result.rowcount or 0, 0)
        outcome.tables_cleared += 1
        outcome.rows_cleared += deleted
        if not keep_settings:
            outcome.emptied.append(table)
        logger.debug("Cleared %d rows from %s", deleted, table)

    return outcome


async def clear_all_data(
    store: StoreClient,
    planner: DependencyPlanner,
    settings: SettingsPreservation | None = None,
) -> ClearSummary:
    """Empty every known live table in one transaction.

    Idempotent: a second call clears zero rows.

    Raises:
        ConnectivityError: If the store cannot be reached.
        TransactionFailedError: If the transaction cannot be committed.
    """
    settings = settings or SettingsPreservation()
    dialect = store.dialect

    async with store.transaction() as conn:
        await dialect.disable_constraints(conn)

        catalog = LiveSchemaCatalog(conn)
        plan = planner.plan_restore(await catalog.table_names())

        outcome = await delete_tables(
            conn, dialect, catalog, plan.delete_order, settings, preserve_settings=True
        )
        await dialect.reset_sequences(conn, outcome.emptied)

        await dialect.enable_constraints(conn)

    logger.info(
        "Cleared %d rows from %d tables", outcome.rows_cleared, outcome.tables_cleared
    )
    return ClearSummary(
        tables_cleared=outcome.tables_cleared,
        rows_cleared=outcome.rows_cleared,
        warnings=outcome.warnings,
    )
