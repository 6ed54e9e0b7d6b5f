"""Pure construction of drift-tolerant INSERT statements.

Given a snapshot row and the *live* columns of its table, ``build_insert``
produces a parameterized INSERT that only touches columns both sides know
about.  Row keys the live table no longer has are dropped; live columns the
row does not carry are filled by ``DefaultsPolicy``.  No I/O happens here.

Usage:
    from pos_backup.backup.inserts import DefaultsPolicy, build_insert

    stmt = build_insert("products", live_columns, row, DefaultsPolicy())
    await conn.execute(text(stmt.sql), stmt.params)
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime, time, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pos_backup.adapters.dialects import quote_identifier
from pos_backup.backup.models import InsertStatement
from pos_backup.schema.models import ColumnDescriptor

# Sentinel: leave the column out of the INSERT entirely
_OMIT = object()


@dataclass
class DefaultsPolicy:
    """Fill values for live columns that a snapshot row does not carry.

    Rules, first match wins:

    1. Primary-key columns: omitted so the store assigns one.
    2. Columns with a declared server default: omitted.
    3. Flag columns: ``truthy_flags`` get true, every other flag false.
    4. Record timestamps (``*_at`` names, TIMESTAMP or DATETIME types):
       the current time.
    5. Other non-nullable temporal columns: the current time.
    6. Numeric columns: 0.
    7. Other non-nullable columns: empty string.
    8. Everything else: null.

    Attributes:
        native_temporals: Bind temporal and numeric values as ``datetime``
            and ``Decimal`` objects (asyncpg) instead of text (SQLite).
    """

    native_temporals: bool = False
    truthy_flags: frozenset[str] = frozenset({"active", "enabled", "is_active"})
    flag_names: frozenset[str] = frozenset({"active", "enabled"})
    flag_prefixes: tuple[str, ...] = ("is_", "has_")
    timestamp_suffixes: tuple[str, ...] = ("_at",)
    now: Any = field(default=None, repr=False)

    def current_time(self) -> datetime:
        if callable(self.now):
            return self.now()
        return datetime.now(timezone.utc)

    def is_identity(self, column: ColumnDescriptor) -> bool:
        return column.primary_key or column.name == "id"

    def is_flag(self, column: ColumnDescriptor) -> bool:
        return (
            column.type_family == "boolean"
            or column.name in self.flag_names
            or column.name.startswith(self.flag_prefixes)
        )

    def is_timestamp(self, column: ColumnDescriptor) -> bool:
        declared = column.declared_type.lower()
        return (
            column.name.endswith(self.timestamp_suffixes)
            or "timestamp" in declared
            or "datetime" in declared
        )

    def fill_value(self, column: ColumnDescriptor) -> Any:
        """Value for a live column absent from the row, or ``_OMIT``."""
        if self.is_identity(column):
            return _OMIT
        if column.default is not None:
            return _OMIT
        if self.is_flag(column):
            return column.name in self.truthy_flags
        if self.is_timestamp(column):
            return self.current_time()
        if column.type_family == "temporal" and not column.nullable:
            return self.current_time()
        if column.type_family in ("integer", "numeric"):
            return 0
        if not column.nullable:
            return ""
        return None


def build_insert(
    table: str,
    live_columns: list[ColumnDescriptor],
    row: dict[str, Any],
    policy: DefaultsPolicy,
) -> InsertStatement:
    """Build one INSERT for ``row`` against the live shape of ``table``.

    Args:
        table: Target table name.
        live_columns: Columns the table has right now, in storage order.
        row: Snapshot row (column name -> JSON value).
        policy: Fill rules for live columns absent from the row.

    Returns:
        ``InsertStatement`` with quoted identifiers and ``p_0..p_n`` params.
        ``dropped`` lists row keys with no live column; ``defaulted`` lists
        live columns the row did not carry (primary keys excepted).

    Example:
        >>> cols = [ColumnDescriptor(name="id", declared_type="INTEGER", primary_key=True),
        ...         ColumnDescriptor(name="name", declared_type="TEXT", nullable=False)]
        >>> build_insert("categories", cols, {"id": 1, "name": "Tea", "legacy": 1},
        ...              DefaultsPolicy()).dropped
        ['legacy']
    """
    live_names = {column.name for column in live_columns}
    dropped = [key for key in row if key not in live_names]

    columns: list[str] = []
    values: list[Any] = []
    defaulted: list[str] = []

    for column in live_columns:
        if column.name in row:
            value = row[column.name]
        else:
            if not policy.is_identity(column):
                defaulted.append(column.name)
            value = policy.fill_value(column)
            if value is _OMIT:
                continue
        columns.append(column.name)
        values.append(coerce_value(column, value, policy.native_temporals))

    quoted_table = quote_identifier(table)
    if not columns:
        sql = f"INSERT INTO {quoted_table} DEFAULT VALUES"
    else:
        column_sql = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join(f":p_{i}" for i in range(len(columns)))
        sql = f"INSERT INTO {quoted_table} ({column_sql}) VALUES ({placeholders})"

    return InsertStatement(
        table=table,
        sql=sql,
        params={f"p_{i}": value for i, value in enumerate(values)},
        columns=columns,
        defaulted=defaulted,
        dropped=dropped,
    )


# ------------------------------------------------------------------
# Value coercion
# ------------------------------------------------------------------


def coerce_value(column: ColumnDescriptor, value: Any, native: bool) -> Any:
    """Coerce a JSON value (or policy default) to the live column's family.

    Values that cannot be converted are passed through unchanged; the store
    then decides, and a rejection is counted against that one row.

    Example:
        >>> coerce_value(ColumnDescriptor(name="meta", declared_type="JSON"), {"a": 1}, False)
        '{"a": 1}'
    """
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if column.is_binary and isinstance(value, str):
        return _from_base64(value)

    family = column.type_family
    if not native:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    if family == "temporal":
        return _to_temporal(column, value)
    if family == "boolean":
        return _to_bool(value)
    if family == "integer":
        return _to_int(value)
    if family == "numeric":
        return _to_number(column, value)
    if family in ("text", "json"):
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
    return value


def _from_base64(value: str) -> Any:
    # Snapshots carry binary column values as base64 text
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error:
        return value


def _to_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "t", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "f", "no", ""):
        return False
    return value


def _to_int(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return value
    return value


def _to_number(column: ColumnDescriptor, value: Any) -> Any:
    exact = any(k in column.declared_type.lower() for k in ("numeric", "decimal", "money"))
    if isinstance(value, bool):
        value = int(value)
    if exact:
        if isinstance(value, (int, float, str)):
            try:
                return Decimal(str(value).strip())
            except InvalidOperation:
                return value
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


def _to_temporal(column: ColumnDescriptor, value: Any) -> Any:
    declared = column.declared_type.lower()
    date_only = "date" in declared and "time" not in declared
    time_only = declared.startswith("time") and "stamp" not in declared

    parsed: Any = value
    if isinstance(value, str):
        text_value = value.strip()
        try:
            if time_only:
                return time.fromisoformat(text_value)
            parsed = datetime.fromisoformat(text_value)
        except ValueError:
            return value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch seconds; large values are milliseconds
        seconds = value / 1000 if value > 1e11 else value
        parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)

    if not isinstance(parsed, datetime):
        return parsed
    if date_only:
        return parsed.date()
    if column.is_timezone_aware:
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed
    if parsed.tzinfo is not None:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
