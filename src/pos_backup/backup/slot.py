"""Single-occupancy holder for the most recent snapshot.

``create`` puts a snapshot into the slot (overwriting whatever was there);
``download`` takes it out, leaving the slot empty.  There is no expiry.

Usage:
    slot = BackupSlot()
    slot.put(payload)
    stored = slot.take_and_clear()   # raises SnapshotNotFoundError when empty
"""

import threading
from datetime import datetime, timezone

from pos_backup.backup.errors import SnapshotNotFoundError
from pos_backup.backup.models import StoredSnapshot


class BackupSlot:
    """Process-wide slot holding at most one serialized snapshot.

    Lifecycle: empty -> populated -> consumed (empty again).

    Example:
        >>> slot = BackupSlot()
        >>> slot.peek() is None
        True
        >>> _ = slot.put('{"tables": {}}')
        >>> slot.take_and_clear().payload
        '{"tables": {}}'
        >>> slot.peek() is None
        True
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stored: StoredSnapshot | None = None

    def put(self, payload: str) -> StoredSnapshot:
        """Store ``payload``, unconditionally replacing any previous snapshot."""
        stored = StoredSnapshot(
            payload=payload,
            size_bytes=len(payload.encode("utf-8")),
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._stored = stored
        return stored

    def take_and_clear(self) -> StoredSnapshot:
        """Return the stored snapshot and empty the slot in one step.

        Raises:
            SnapshotNotFoundError: If the slot is empty.
        """
        with self._lock:
            stored, self._stored = self._stored, None
        if stored is None:
            raise SnapshotNotFoundError()
        return stored

    def peek(self) -> StoredSnapshot | None:
        """Report the stored snapshot without consuming it."""
        with self._lock:
            return self._stored
