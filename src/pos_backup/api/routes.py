"""Backup & restore HTTP API.

Four endpoints over ``BackupService``:

- ``POST /api/backup/create``: snapshot into the slot, report totals
- ``GET /api/backup/download``: hand out (and consume) the snapshot
- ``POST /api/backup/restore``: replace all data from a snapshot
- ``POST /api/data/clear``: delete all data except preserved settings

Failures are ``BackupError``s rendered by the app's exception handler as
``{error, message, technical?}`` with the error's status code.
"""

import json
import logging
from datetime import date, datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pos_backup.backup.errors import InvalidFormatError, PayloadTooLargeError
from pos_backup.service import BackupService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["backup"])

# Room for the `{"backup": ...}` wrapper around the snapshot
_BODY_ENVELOPE_BYTES = 256


# ============ Response Models ============


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SnapshotTotals(CamelModel):
    tables: int
    records: int
    size: str


class CreateResponse(CamelModel):
    success: bool = True
    timestamp: str
    summary: SnapshotTotals


class RestoreResponse(CamelModel):
    success: bool = True
    message: str
    timestamp: str
    tables_restored: int
    rows_restored: int
    rows_skipped: int
    warnings: list[str] = Field(default_factory=list)


class ClearResponse(CamelModel):
    success: bool = True
    records_cleared: int
    tables_cleared: int
    timestamp: str


# ============ Helpers ============


def get_service(request: Request) -> BackupService:
    return request.app.state.service


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def download_filename(day: date | None = None) -> str:
    """Attachment name for a downloaded snapshot, e.g. ``pos-backup-2024-05-01.json``."""
    day = day or datetime.now(timezone.utc).date()
    return f"pos-backup-{day.isoformat()}.json"


async def _read_body(request: Request, max_bytes: int) -> bytes:
    """Read the request body, stopping once it cannot hold a snapshot of ``max_bytes``.

    The snapshot may arrive JSON-escaped inside the envelope, which at most
    doubles its size.  The exact ceiling is applied to the snapshot itself
    by ``parse_snapshot``.
    """
    limit = 2 * max_bytes + _BODY_ENVELOPE_BYTES
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        raise PayloadTooLargeError(int(declared), max_bytes)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(len(body), max_bytes)
    return bytes(body)


async def _read_restore_payload(request: Request, max_bytes: int) -> str | dict[str, Any]:
    """Extract the ``backup`` field (string or object) from the request body."""
    raw = await _read_body(request, max_bytes)
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidFormatError("Request body is not valid JSON.", technical=str(e)) from e

    if not isinstance(body, dict) or body.get("backup") in (None, ""):
        raise InvalidFormatError("No backup data provided.")

    backup = body["backup"]
    if not isinstance(backup, (str, dict)):
        raise InvalidFormatError("Backup data must be a JSON string or object.")
    return backup


# ============ Endpoints ============


@router.post("/backup/create", response_model=CreateResponse)
async def create_backup(service: BackupService = Depends(get_service)) -> CreateResponse:
    """Snapshot all known tables into the backup slot."""
    summary = await service.create_snapshot()
    return CreateResponse(
        timestamp=_now(),
        summary=SnapshotTotals(
            tables=summary.tables,
            records=summary.records,
            size=summary.size,
        ),
    )


@router.get("/backup/download")
async def download_backup(service: BackupService = Depends(get_service)) -> Response:
    """Return the waiting snapshot as a JSON attachment and empty the slot."""
    stored = service.download_snapshot()
    return Response(
        content=stored.payload,
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{download_filename()}"',
        },
    )


@router.post("/backup/restore", response_model=RestoreResponse)
async def restore_backup(
    request: Request,
    service: BackupService = Depends(get_service),
) -> RestoreResponse:
    """Replace all data with the contents of the posted snapshot."""
    payload = await _read_restore_payload(request, service.settings.max_restore_bytes)
    summary = await service.restore(payload)

    message = (
        f"Restored {summary.rows_restored} records across "
        f"{summary.tables_restored} tables."
    )
    if summary.rows_skipped:
        message += f" {summary.rows_skipped} records could not be restored."

    return RestoreResponse(
        message=message,
        timestamp=_now(),
        tables_restored=summary.tables_restored,
        rows_restored=summary.rows_restored,
        rows_skipped=summary.rows_skipped,
        warnings=summary.warnings,
    )


@router.post("/data/clear", response_model=ClearResponse)
async def clear_data(service: BackupService = Depends(get_service)) -> ClearResponse:
    """Delete all data except the preserved business settings."""
    summary = await service.clear_all()
    return ClearResponse(
        records_cleared=summary.rows_cleared,
        tables_cleared=summary.tables_cleared,
        timestamp=_now(),
    )
