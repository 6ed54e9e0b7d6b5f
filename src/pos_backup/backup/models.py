"""Snapshot document and operation result models.

The snapshot document is the portable JSON artifact: it carries the
store's table and column names verbatim and snake_case metadata keys.

Usage:
    from pos_backup.backup.models import SnapshotDocument, TableSnapshot

    document = SnapshotDocument.build(
        tables={"categories": TableSnapshot(table_name="categories", rows=rows)},
        source_label="awesome-shop-pos",
    )
    payload = document.model_dump_json()
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

FORMAT_VERSION = "1.0"


# ============================================================================
# Snapshot document
# ============================================================================


class TableSnapshot(BaseModel):
    """Rows of one table, in the order they were read."""

    table_name: str
    rows: list[dict[str, Any]] = Field(default_factory=list)


class SnapshotMetadata(BaseModel):
    """Document totals (``table_count`` counts non-empty tables only)."""

    table_count: int = 0
    record_count: int = 0
    approximate_byte_size: int = 0


class SnapshotDocument(BaseModel):
    """Self-contained capture of the selected tables at one point in time.

    Example:
        >>> doc = SnapshotDocument.build(
        ...     tables={"users": TableSnapshot(table_name="users", rows=[{"id": 1}])},
        ... )
        >>> doc.metadata.table_count, doc.metadata.record_count
        (1, 1)
    """

    format_version: str = FORMAT_VERSION
    created_at: str = ""
    source_label: str = ""
    tables: dict[str, TableSnapshot] = Field(default_factory=dict)
    metadata: SnapshotMetadata = Field(default_factory=SnapshotMetadata)

    @classmethod
    def build(
        cls,
        tables: dict[str, TableSnapshot],
        source_label: str = "",
        created_at: datetime | None = None,
    ) -> "SnapshotDocument":
        """Assemble a document and compute its metadata totals."""
        created = created_at or datetime.now(timezone.utc)
        document = cls(
            created_at=created.isoformat(),
            source_label=source_label,
            tables=tables,
            metadata=SnapshotMetadata(
                table_count=sum(1 for t in tables.values() if t.rows),
                record_count=sum(len(t.rows) for t in tables.values()),
            ),
        )
        return document

    def serialize(self) -> str:
        """Serialize to JSON, filling ``approximate_byte_size`` first.

        The size is measured on the document with the size field zeroed and
        then written in; the final payload differs only by the digits of the
        size itself.
        """
        self.metadata.approximate_byte_size = 0
        size = len(self.model_dump_json().encode("utf-8"))
        self.metadata.approximate_byte_size = size
        return self.model_dump_json()

    @property
    def major_version(self) -> int | None:
        head = self.format_version.split(".", 1)[0].strip()
        return int(head) if head.isdigit() else None


# ============================================================================
# Slot entry
# ============================================================================


@dataclass(frozen=True)
class StoredSnapshot:
    """The serialized snapshot held by the backup slot."""

    payload: str
    size_bytes: int
    created_at: datetime


# ============================================================================
# Restore planning and insert construction
# ============================================================================


@dataclass
class RestorePlan:
    """Table order for one restore or clear-all, computed against the live schema.

    Attributes:
        insert_order: Forward dependency order (parents first).
        delete_order: Reverse dependency order (children first).
    """

    insert_order: list[str] = field(default_factory=list)
    delete_order: list[str] = field(default_factory=list)


@dataclass
class InsertStatement:
    """A parameterized INSERT for one snapshot row.

    Example:
        stmt = build_insert("categories", columns, {"id": 1, "name": "Tea"}, policy)
        stmt.sql
        # 'INSERT INTO "categories" ("id", "name") VALUES (:p_0, :p_1)'
    """

    table: str
    sql: str
    params: dict[str, Any]
    columns: list[str]
    defaulted: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)


# ============================================================================
# Operation results
# ============================================================================


class InsertOutcome(BaseModel):
    """Result of inserting one table's rows independently."""

    inserted: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


class TableRestoreResult(InsertOutcome):
    """Per-table restore outcome, including schema-drift notes."""

    defaulted_columns: list[str] = Field(default_factory=list)
    dropped_columns: list[str] = Field(default_factory=list)


class RestoreSummary(BaseModel):
    """Result of restore_snapshot().

    Example:
        >>> summary = RestoreSummary(tables_restored=4, rows_restored=14)
        >>> summary.rows_skipped
        0
    """

    tables_restored: int = 0
    rows_restored: int = 0
    rows_skipped: int = 0
    warnings: list[str] = Field(default_factory=list)
    tables: dict[str, TableRestoreResult] = Field(default_factory=dict)


class ClearSummary(BaseModel):
    """Result of clear_all_data()."""

    tables_cleared: int = 0
    rows_cleared: int = 0
    warnings: list[str] = Field(default_factory=list)


class SnapshotSummary(BaseModel):
    """What create-snapshot reports back; the document itself stays in the slot."""

    tables: int
    records: int
    size_bytes: int
    size: str
