"""Store adapters package.

Provides the ``StoreClient`` Protocol, the async SQLAlchemy
``StoreAdapter`` implementation, and the per-engine dialect hooks.

Usage:
    from pos_backup.adapters import StoreAdapter, StoreClient
"""

from pos_backup.adapters.base import StoreClient
from pos_backup.adapters.dialects import PostgresDialect, SqliteDialect, StoreDialect
from pos_backup.adapters.engine import StoreAdapter

__all__ = [
    "StoreClient",
    "StoreAdapter",
    "StoreDialect",
    "SqliteDialect",
    "PostgresDialect",
]
