"""Restore a snapshot document into the live store.

The restore replaces the contents of every known live table with the
snapshot's rows, tolerating schema drift between snapshot time and now:

- snapshot columns the live table no longer has are dropped
- live columns the snapshot lacks are filled by ``DefaultsPolicy``
- snapshot tables that no longer exist are skipped with a warning
- a row the store rejects is skipped; the other rows still land

Everything runs in one transaction.  If the store fails outside a
per-statement guard, or rejects the commit, nothing is changed.

Usage:
    from pos_backup.backup.restore import restore_snapshot

    summary = await restore_snapshot(store, DependencyPlanner(), payload)
    print(f"{summary.rows_restored} rows restored, {summary.rows_skipped} skipped")
"""

import json
import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection

from pos_backup.adapters.base import StoreClient
from pos_backup.adapters.dialects import StoreDialect
from pos_backup.backup.clear import SettingsPreservation, delete_tables
from pos_backup.backup.errors import (
    CONSTRAINT_VIOLATION,
    SCHEMA_MISMATCH,
    InvalidFormatError,
    PayloadTooLargeError,
)
from pos_backup.backup.inserts import DefaultsPolicy, build_insert
from pos_backup.backup.models import (
    RestoreSummary,
    SnapshotDocument,
    TableRestoreResult,
    TableSnapshot,
)
from pos_backup.backup.planner import DependencyPlanner
from pos_backup.schema.catalog import LiveSchemaCatalog
from pos_backup.schema.models import ColumnDescriptor

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESTORE_BYTES = 10 * 1024 * 1024

SUPPORTED_MAJOR_VERSION = 1


# ------------------------------------------------------------------
# Parsing and validation (no store access)
# ------------------------------------------------------------------


def parse_snapshot(
    payload: str | bytes | dict[str, Any],
    max_bytes: int = DEFAULT_MAX_RESTORE_BYTES,
) -> tuple[SnapshotDocument, list[str]]:
    """Validate a restore payload and turn it into a ``SnapshotDocument``.

    Checks run in order, and all of them before the store is touched:
    size ceiling, JSON object, ``tables`` mapping, row shape, format version.

    Args:
        payload: Serialized document, or an already-decoded JSON object.
        max_bytes: Size ceiling in UTF-8 bytes.

    Returns:
        Tuple of (document, warnings).

    Raises:
        PayloadTooLargeError: If the payload exceeds ``max_bytes``.
        InvalidFormatError: If the payload is not a usable snapshot.
    """
    if isinstance(payload, dict):
        size = len(json.dumps(payload).encode("utf-8"))
    elif isinstance(payload, bytes):
        size = len(payload)
    else:
        size = len(payload.encode("utf-8"))
    if size > max_bytes:
        raise PayloadTooLargeError(size, max_bytes)

    if isinstance(payload, dict):
        data: Any = payload
    else:
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidFormatError(
                "Backup file is not valid JSON.", technical=str(e)
            ) from e

    if not isinstance(data, dict):
        raise InvalidFormatError("Invalid backup format: expected a JSON object.")

    raw_tables = data.get("tables")
    if not isinstance(raw_tables, dict):
        raise InvalidFormatError("Invalid backup format: missing 'tables' section.")

    warnings: list[str] = []
    version = _check_version(data.get("format_version"), warnings)

    tables: dict[str, TableSnapshot] = {}
    for name, entry in raw_tables.items():
        if isinstance(entry, dict):
            rows = entry.get("rows", [])
            table_name = entry.get("table_name") or name
        else:
            rows = entry
            table_name = name
        if not isinstance(table_name, str):
            raise InvalidFormatError(
                f"Invalid backup format: table_name of table '{name}' must be a string."
            )
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise InvalidFormatError(
                f"Invalid backup format: rows of table '{name}' must be a list of objects."
            )
        try:
            tables[table_name] = TableSnapshot(table_name=table_name, rows=rows)
        except ValidationError as e:
            raise InvalidFormatError(
                f"Invalid backup format: table '{name}' is malformed.", technical=str(e)
            ) from e

    try:
        document = SnapshotDocument.build(
            tables=tables,
            source_label=str(data.get("source_label") or ""),
        )
    except ValidationError as e:
        raise InvalidFormatError("Invalid backup format.", technical=str(e)) from e
    document.format_version = version
    if isinstance(data.get("created_at"), str):
        document.created_at = data["created_at"]
    return document, warnings


def _check_version(raw: Any, warnings: list[str]) -> str:
    if raw is None:
        warnings.append("Backup has no format_version; assuming version 1.")
        return f"{SUPPORTED_MAJOR_VERSION}.0"

    version = str(raw).strip()
    head = version.split(".", 1)[0]
    if not head.isdigit() or int(head) != SUPPORTED_MAJOR_VERSION:
        raise InvalidFormatError(
            f"Unsupported backup format version {version!r}. "
            f"This version can restore format {SUPPORTED_MAJOR_VERSION}.x backups."
        )
    return version


# ------------------------------------------------------------------
# Row insertion
# ------------------------------------------------------------------


async def insert_rows(
    conn: AsyncConnection,
    dialect: StoreDialect,
    table: str,
    live_columns: list[ColumnDescriptor],
    rows: list[dict[str, Any]],
    policy: DefaultsPolicy,
) -> TableRestoreResult:
    """Insert ``rows`` one by one; a rejected row is skipped, not fatal.

    Example:
        result = await insert_rows(conn, dialect, "sale_items", columns, rows, policy)
        result.inserted, result.skipped
        # (99, 1)
    """
    result = TableRestoreResult()

    for index, row in enumerate(rows):
        stmt = build_insert(table, live_columns, row, policy)
        for name in stmt.dropped:
            if name not in result.dropped_columns:
                result.dropped_columns.append(name)
        for name in stmt.defaulted:
            if name not in result.defaulted_columns:
                result.defaulted_columns.append(name)

        try:
            async with dialect.statement_guard(conn):
                await conn.execute(text(stmt.sql), stmt.params)
        except DBAPIError as e:
            logger.warning("Skipped row %d of %s: %s", index, table, e.orig)
            result.skipped += 1
            result.errors.append(f"row {index}: {e.orig}")
            continue

        result.inserted += 1

    return result


# ------------------------------------------------------------------
# Restore executor
# ------------------------------------------------------------------


async def restore_snapshot(
    store: StoreClient,
    planner: DependencyPlanner,
    payload: str | bytes | dict[str, Any],
    max_bytes: int = DEFAULT_MAX_RESTORE_BYTES,
    settings: SettingsPreservation | None = None,
    policy: DefaultsPolicy | None = None,
) -> RestoreSummary:
    """Replace the store's data with the contents of a snapshot.

    Args:
        store: Target store.
        planner: Table ordering.
        payload: Serialized snapshot (or decoded JSON object).
        max_bytes: Payload size ceiling.
        settings: Settings rows kept when the snapshot has no settings section.
        policy: Fill rules for live columns the snapshot lacks.  Defaults
            to one matching the store's dialect.

    Returns:
        ``RestoreSummary``; ``tables_restored`` counts tables with at least
        one inserted row.

    Raises:
        PayloadTooLargeError: Payload over ``max_bytes`` (nothing mutated).
        InvalidFormatError: Payload is not a usable snapshot (nothing mutated).
        ConnectivityError: The store cannot be reached.
        TransactionFailedError: The transaction was rolled back.

    Example:
        summary = await restore_snapshot(store, DependencyPlanner(), payload)
        summary.tables_restored, summary.rows_restored, summary.rows_skipped
        # (4, 14, 0)
    """
    document, warnings = parse_snapshot(payload, max_bytes)
    settings = settings or SettingsPreservation()
    dialect = store.dialect
    policy = policy or DefaultsPolicy(native_temporals=dialect.native_temporals)
    summary = RestoreSummary(warnings=warnings)

    async with store.transaction() as conn:
        await dialect.disable_constraints(conn)

        catalog = LiveSchemaCatalog(conn)
        live_tables = await catalog.table_names()
        plan = planner.plan_restore(live_tables)

        deletion = await delete_tables(
            conn,
            dialect,
            catalog,
            plan.delete_order,
            settings,
            preserve_settings=settings.table not in document.tables,
        )
        summary.warnings.extend(deletion.warnings)
        await dialect.reset_sequences(conn, deletion.emptied)

        planned = set(plan.insert_order)
        for name, snapshot in document.tables.items():
            if name in planned:
                continue
            if name not in live_tables:
                reason = "no longer exists in the database"
            else:
                reason = "is not a table this engine restores"
            summary.warnings.append(
                f"{SCHEMA_MISMATCH}: table {name} {reason}; "
                f"{len(snapshot.rows)} rows not restored"
            )
            summary.rows_skipped += len(snapshot.rows)

        for table in plan.insert_order:
            snapshot = document.tables.get(table)
            if snapshot is None or not snapshot.rows:
                continue

            live_columns = await catalog.columns_of(table)
            result = await insert_rows(conn, dialect, table, live_columns, snapshot.rows, policy)
            summary.tables[table] = result
            summary.rows_restored += result.inserted
            summary.rows_skipped += result.skipped
            if result.inserted:
                summary.tables_restored += 1
            summary.warnings.extend(_table_warnings(table, result))

        await dialect.sync_sequences(conn, list(summary.tables))
        await dialect.enable_constraints(conn)

    logger.info(
        "Restore complete: %d rows into %d tables, %d skipped",
        summary.rows_restored,
        summary.tables_restored,
        summary.rows_skipped,
    )
    return summary


def _table_warnings(table: str, result: TableRestoreResult) -> list[str]:
    warnings: list[str] = []
    if result.dropped_columns:
        warnings.append(
            f"{SCHEMA_MISMATCH}: {table}: ignored columns no longer in the database: "
            f"{', '.join(result.dropped_columns)}"
        )
    if result.defaulted_columns:
        warnings.append(
            f"{SCHEMA_MISMATCH}: {table}: used defaults for columns missing from the backup: "
            f"{', '.join(result.defaulted_columns)}"
        )
    if result.skipped:
        warnings.append(
            f"{CONSTRAINT_VIOLATION}: {table}: {result.skipped} rows skipped "
            f"(first error: {result.errors[0]})"
        )
    return warnings
