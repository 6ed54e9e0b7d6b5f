"""Store client protocol definition.

Defines the ``StoreClient`` Protocol that the backup engine talks to.
Unlike a CRUD client, the engine needs raw connections: it reads the live
schema catalog, runs many statements inside one transaction, and toggles
engine-specific session state.  All methods are async.

Usage:
    from pos_backup.adapters.base import StoreClient

    async def count_products(store: StoreClient) -> int:
        async with store.connect() as conn:
            result = await conn.exec_driver_sql("SELECT count(*) FROM products")
            return result.scalar_one()
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncConnection

from pos_backup.adapters.dialects import StoreDialect


class StoreClient(Protocol):
    """Store interface consumed by the snapshot, restore and clear executors.

    ``dialect`` exposes the engine-specific hooks (constraint toggling,
    sequence reset, per-statement isolation) so executors stay engine
    neutral.
    """

    dialect: StoreDialect

    def connect(self) -> AbstractAsyncContextManager[AsyncConnection]:
        """Open a read connection.

        Raises:
            ConnectivityError: If the store cannot be reached.

        Example:
            async with store.connect() as conn:
                rows = (await conn.exec_driver_sql("SELECT 1")).all()
        """
        ...

    def transaction(self) -> AbstractAsyncContextManager[AsyncConnection]:
        """Open a connection inside a single transaction.

        Commits when the block exits normally and rolls back when it raises.

        Raises:
            ConnectivityError: If the store cannot be reached.
            TransactionFailedError: If the store errors outside any
                statement guard, or rejects the commit.
        """
        ...

    async def test_connection(self) -> bool:
        """Return ``True`` when ``SELECT 1`` succeeds."""
        ...

    async def close(self) -> None:
        """Dispose of pooled connections."""
        ...
