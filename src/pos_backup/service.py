"""Backup service: the four operations behind one object.

``BackupService`` owns the backup slot and serializes the mutating
operations.  A restore or clear-all issued while another restore or
clear-all is running is rejected with ``OperationInProgressError`` rather
than queued; snapshot creation and download are never blocked.

Usage:
    from pos_backup.service import BackupService

    service = BackupService(store)
    summary = await service.create_snapshot()
    stored = service.download_snapshot()
    result = await service.restore(stored.payload)
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from pos_backup.adapters.base import StoreClient
from pos_backup.backup.clear import SettingsPreservation, clear_all_data
from pos_backup.backup.errors import OperationInProgressError
from pos_backup.backup.models import (
    ClearSummary,
    RestoreSummary,
    SnapshotSummary,
    StoredSnapshot,
)
from pos_backup.backup.planner import DependencyPlanner
from pos_backup.backup.restore import restore_snapshot
from pos_backup.backup.slot import BackupSlot
from pos_backup.backup.snapshot import create_snapshot
from pos_backup.config.models import BackupSettings

logger = logging.getLogger(__name__)


class BackupService:
    """Create, download, restore, and clear for one store.

    Args:
        store: Store client (usually a ``StoreAdapter``).
        settings: The ``[backup]`` configuration section.
        slot: Backup slot; a fresh empty one by default.
    """

    def __init__(
        self,
        store: StoreClient,
        settings: BackupSettings | None = None,
        slot: BackupSlot | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or BackupSettings()
        self.slot = slot or BackupSlot()
        self.planner = DependencyPlanner(self.settings.extension_tables)
        self.preservation = SettingsPreservation(
            table=self.settings.settings_table,
            key_column=self.settings.settings_key_column,
            preserved_keys=list(self.settings.preserved_setting_keys),
        )
        self._mutation_lock = asyncio.Lock()
        self._running: str | None = None

    @property
    def running_operation(self) -> str | None:
        """Name of the restore/clear currently running, if any."""
        return self._running

    @asynccontextmanager
    async def _single_flight(self, operation: str) -> AsyncIterator[None]:
        if self._mutation_lock.locked():
            logger.warning("Rejected %s: %s already running", operation, self._running)
            raise OperationInProgressError(self._running or operation)
        async with self._mutation_lock:
            self._running = operation
            try:
                yield
            finally:
                self._running = None

    async def create_snapshot(self) -> SnapshotSummary:
        """Snapshot the store into the slot, replacing any previous snapshot."""
        return await create_snapshot(
            self.store,
            self.planner,
            self.slot,
            source_label=self.settings.source_label,
        )

    def download_snapshot(self) -> StoredSnapshot:
        """Take the snapshot out of the slot.

        Raises:
            SnapshotNotFoundError: If no snapshot is waiting.
        """
        return self.slot.take_and_clear()

    async def restore(self, payload: str | bytes | dict[str, Any]) -> RestoreSummary:
        """Replace the store's data with a snapshot.

        Raises:
            OperationInProgressError: If a restore or clear is running.
        """
        async with self._single_flight("restore"):
            return await restore_snapshot(
                self.store,
                self.planner,
                payload,
                max_bytes=self.settings.max_restore_bytes,
                settings=self.preservation,
            )

    async def clear_all(self) -> ClearSummary:
        """Delete all data except the preserved settings.

        Raises:
            OperationInProgressError: If a restore or clear is running.
        """
        async with self._single_flight("clear"):
            return await clear_all_data(self.store, self.planner, self.preservation)
