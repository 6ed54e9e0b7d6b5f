"""Live schema reflection.

Usage:
    from pos_backup.schema import LiveSchemaCatalog, ColumnDescriptor
"""

from pos_backup.schema.catalog import LiveSchemaCatalog, SchemaCatalog, StaticSchemaCatalog
from pos_backup.schema.models import ColumnDescriptor, ConnectionResult, classify_type

__all__ = [
    "SchemaCatalog",
    "LiveSchemaCatalog",
    "StaticSchemaCatalog",
    "ColumnDescriptor",
    "classify_type",
    "ConnectionResult",
]
