"""Snapshot, restore, and clear-all engine.

Usage:
    from pos_backup.backup import create_snapshot, restore_snapshot, clear_all_data
    from pos_backup.backup import BackupSlot, DependencyPlanner
"""

from pos_backup.backup.clear import SettingsPreservation, clear_all_data
from pos_backup.backup.errors import (
    BackupError,
    ConnectivityError,
    InvalidFormatError,
    OperationInProgressError,
    PayloadTooLargeError,
    SnapshotNotFoundError,
    TransactionFailedError,
)
from pos_backup.backup.inserts import DefaultsPolicy, build_insert
from pos_backup.backup.models import (
    ClearSummary,
    RestorePlan,
    RestoreSummary,
    SnapshotDocument,
    SnapshotSummary,
    TableSnapshot,
)
from pos_backup.backup.planner import DependencyPlanner
from pos_backup.backup.restore import parse_snapshot, restore_snapshot
from pos_backup.backup.slot import BackupSlot
from pos_backup.backup.snapshot import create_snapshot

__all__ = [
    # Operations
    "create_snapshot",
    "restore_snapshot",
    "parse_snapshot",
    "clear_all_data",
    "build_insert",
    # Collaborators
    "BackupSlot",
    "DependencyPlanner",
    "DefaultsPolicy",
    "SettingsPreservation",
    # Models
    "SnapshotDocument",
    "TableSnapshot",
    "RestorePlan",
    "RestoreSummary",
    "ClearSummary",
    "SnapshotSummary",
    # Errors
    "BackupError",
    "InvalidFormatError",
    "PayloadTooLargeError",
    "SnapshotNotFoundError",
    "TransactionFailedError",
    "ConnectivityError",
    "OperationInProgressError",
]
