"""FastAPI application factory.

Usage:
    from pos_backup.api.app import create_app
    from pos_backup.service import BackupService

    app = create_app(BackupService(store))
    # uvicorn.run(app, host="127.0.0.1", port=5000)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pos_backup import __version__
from pos_backup.api.routes import router
from pos_backup.backup.errors import BackupError
from pos_backup.service import BackupService

logger = logging.getLogger(__name__)


async def handle_backup_error(request: Request, exc: BackupError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.technical)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(service: BackupService) -> FastAPI:
    """Build the API around one ``BackupService``; its store is closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await service.store.close()

    app = FastAPI(title="pos-backup", version=__version__, lifespan=lifespan)
    app.state.service = service
    app.add_exception_handler(BackupError, handle_backup_error)
    app.include_router(router)
    return app
