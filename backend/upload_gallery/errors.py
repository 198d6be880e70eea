"""Storage exceptions and application-wide error handlers."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """An object-store call failed. The message is the store's own error text."""


class StorageConflictError(StorageError):
    """The key already exists and the store refused to overwrite it."""


class StorageNotFoundError(StorageError):
    """No object exists under the requested key."""


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, handle_unexpected_error)
