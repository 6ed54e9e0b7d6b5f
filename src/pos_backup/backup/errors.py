"""Error taxonomy for snapshot, restore, and clear-all operations.

Every fatal failure surfaced to a caller is a ``BackupError`` subclass
carrying three things:

- ``category``: a stable machine-readable code (``"InvalidFormat"``, ...).
- ``message``: a short human-readable sentence an operator can act on.
- ``technical``: optional low-level detail (driver error text) for diagnosis.

Row-level and table-level problems during restore/clear are *not* raised;
they are collected as warnings (see ``backup.models.InsertOutcome``).

Usage:
    from pos_backup.backup.errors import InvalidFormatError

    try:
        document = parse_snapshot(payload, max_bytes)
    except InvalidFormatError as e:
        return {"error": e.category, "message": e.message}
"""

from typing import Any


class BackupError(Exception):
    """Base class for all surfaced backup engine failures."""

    category: str = "BackupError"
    status_code: int = 500

    def __init__(self, message: str, technical: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.technical = technical

    def to_dict(self) -> dict[str, Any]:
        """Render as the ``{error, message, technical?}`` response payload."""
        payload: dict[str, Any] = {"error": self.category, "message": self.message}
        if self.technical:
            payload["technical"] = self.technical
        return payload


class InvalidFormatError(BackupError):
    """Snapshot payload is not parseable or lacks required structure."""

    category = "InvalidFormat"
    status_code = 400


class PayloadTooLargeError(BackupError):
    """Snapshot payload exceeds the configured byte ceiling."""

    category = "PayloadTooLarge"
    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Backup file is too large ({size} bytes). "
            f"Maximum allowed size is {limit} bytes.",
        )
        self.size = size
        self.limit = limit

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["limit"] = self.limit
        return payload


class SnapshotNotFoundError(BackupError):
    """Download requested while the backup slot is empty."""

    category = "NotFound"
    status_code = 404

    def __init__(self, message: str = "No backup available. Create a backup first.") -> None:
        super().__init__(message)


class TransactionFailedError(BackupError):
    """The store could not commit the restore/clear transaction as a whole."""

    category = "TransactionFailed"
    status_code = 500


class ConnectivityError(BackupError):
    """The store is unreachable."""

    category = "ConnectivityFailure"
    status_code = 503


class OperationInProgressError(BackupError):
    """A restore or clear-all is already running in this process."""

    category = "OperationInProgress"
    status_code = 409

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"Another {operation} is already in progress. Try again when it finishes."
        )
        self.operation = operation


# Categories recorded as warnings rather than raised
CONSTRAINT_VIOLATION = "ConstraintViolation"
SCHEMA_MISMATCH = "SchemaMismatch"
