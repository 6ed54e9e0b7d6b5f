"""pos-backup: schema-drift tolerant backup and restore for a point-of-sale store.

Snapshots the shop's tables into one portable JSON document and restores
it later, even after columns were added, removed, or renamed.  Supports
SQLite (desktop installs) and PostgreSQL (hosted installs).

Usage:
    from pos_backup import BackupService, StoreAdapter

    service = BackupService(StoreAdapter("sqlite:///pos-data.db"))
    summary = await service.create_snapshot()
    payload = service.download_snapshot().payload
    result = await service.restore(payload)
"""

__version__ = "0.1.0"

# Adapters
from pos_backup.adapters.base import StoreClient
from pos_backup.adapters.engine import StoreAdapter

# Config
from pos_backup.config.loader import load_config
from pos_backup.config.models import BackupConfig, BackupSettings, StoreProfile

# Factory
from pos_backup.factory import (
    ProfileNotFoundError,
    connect_and_validate,
    get_adapter,
    resolve_url,
)

# Engine
from pos_backup.backup import (
    BackupError,
    BackupSlot,
    DependencyPlanner,
    clear_all_data,
    create_snapshot,
    restore_snapshot,
)
from pos_backup.service import BackupService

__all__ = [
    # Adapters
    "StoreClient",
    "StoreAdapter",
    # Config
    "load_config",
    "BackupConfig",
    "BackupSettings",
    "StoreProfile",
    # Factory
    "get_adapter",
    "connect_and_validate",
    "ProfileNotFoundError",
    "resolve_url",
    # Engine
    "BackupService",
    "BackupSlot",
    "DependencyPlanner",
    "BackupError",
    "create_snapshot",
    "restore_snapshot",
    "clear_all_data",
]
