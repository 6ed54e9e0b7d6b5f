"""Snapshot creation: read every known table into one JSON document.

Reads are done on a single connection and never mutate the store.  Tables
that do not exist in the live schema are skipped silently, so an older
store with fewer tables still produces a valid snapshot.

Usage:
    from pos_backup.backup.snapshot import create_snapshot

    summary = await create_snapshot(store, planner, slot, source_label="shop-1")
    print(f"{summary.records} records in {summary.tables} tables ({summary.size})")
"""

import base64
import logging
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from pos_backup.adapters.base import StoreClient
from pos_backup.adapters.dialects import quote_identifier
from pos_backup.backup.errors import BackupError, ConnectivityError
from pos_backup.backup.models import SnapshotDocument, SnapshotSummary, TableSnapshot
from pos_backup.backup.planner import DependencyPlanner
from pos_backup.backup.slot import BackupSlot
from pos_backup.schema.catalog import LiveSchemaCatalog, SchemaCatalog

logger = logging.getLogger(__name__)


def normalize_value(value: Any) -> Any:
    """Convert a store value to its JSON-compatible form.

    Example:
        >>> normalize_value(Decimal("12.50"))
        '12.50'
        >>> normalize_value(b"\\x00\\x01")
        'AAE='
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (dict, list)):
        return value
    return str(value)


def format_size(size_bytes: int) -> str:
    """Human-readable size.

    Example:
        >>> format_size(1434)
        '1.4 KB'
        >>> format_size(512)
        '512 B'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


async def snapshot_table(
    conn: AsyncConnection,
    catalog: SchemaCatalog,
    table: str,
) -> list[dict[str, Any]]:
    """Read all rows of ``table``; an absent table yields an empty list.

    Rows come back in primary-key order when the table has one, so two
    snapshots of an unchanged table are identical.

    Raises:
        ConnectivityError: If the connection drops mid-read.
        BackupError: If the store rejects the read.
    """
    if not await catalog.has_table(table):
        logger.debug("Table %s not present; skipping", table)
        return []

    columns = await catalog.columns_of(table)
    pk_columns = [c.name for c in columns if c.primary_key]

    sql = f"SELECT * FROM {quote_identifier(table)}"
    if pk_columns:
        sql += " ORDER BY " + ", ".join(quote_identifier(c) for c in pk_columns)

    try:
        result = await conn.execute(text(sql))
    except DBAPIError as e:
        if e.connection_invalidated:
            raise ConnectivityError(
                "The database connection was lost while reading data.",
                technical=str(e.orig),
            ) from e
        raise BackupError(
            f"Could not read table {table}.",
            technical=str(e.orig),
        ) from e

    return [
        {key: normalize_value(value) for key, value in row.items()}
        for row in result.mappings()
    ]


async def build_snapshot(
    store: StoreClient,
    planner: DependencyPlanner,
    source_label: str = "",
) -> SnapshotDocument:
    """Read every known table and assemble one ``SnapshotDocument``."""
    tables: dict[str, TableSnapshot] = {}
    total = 0

    async with store.connect() as conn:
        catalog = LiveSchemaCatalog(conn)
        try:
            live = await catalog.table_names()
            for table in planner.known_tables:
                if table not in live:
                    logger.debug("Table %s not present; skipping", table)
                    continue
                rows = await snapshot_table(conn, catalog, table)
                tables[table] = TableSnapshot(table_name=table, rows=rows)
                total += len(rows)
                logger.debug("Read %d rows from %s (running total %d)", len(rows), table, total)
        except SQLAlchemyError as e:
            raise BackupError("Could not read the database schema.", technical=str(e)) from e

    return SnapshotDocument.build(tables=tables, source_label=source_label)


async def create_snapshot(
    store: StoreClient,
    planner: DependencyPlanner,
    slot: BackupSlot,
    source_label: str = "",
) -> SnapshotSummary:
    """Snapshot the store into ``slot`` and report totals.

    The serialized document replaces whatever the slot held.  Only the
    summary is returned; the document is retrieved with
    ``slot.take_and_clear()``.

    Args:
        store: Store to read.
        planner: Supplies the known table list.
        slot: Destination slot (overwritten).
        source_label: Free-form origin label written into the document.

    Returns:
        ``SnapshotSummary`` with non-empty table count, record count, and size.

    Example:
        summary = await create_snapshot(store, DependencyPlanner(), slot)
        summary.tables, summary.records
        # (4, 14)
    """
    document = await build_snapshot(store, planner, source_label=source_label)
    payload = document.serialize()
    stored = slot.put(payload)

    logger.info(
        "Snapshot created: %d records in %d tables (%s)",
        document.metadata.record_count,
        document.metadata.table_count,
        format_size(stored.size_bytes),
    )

    return SnapshotSummary(
        tables=document.metadata.table_count,
        records=document.metadata.record_count,
        size_bytes=stored.size_bytes,
        size=format_size(stored.size_bytes),
    )
