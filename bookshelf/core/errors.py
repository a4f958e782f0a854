"""Domain errors and their HTTP mapping."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class LibraryError(Exception):
    """Base class for errors raised by the book services."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(LibraryError):
    """Input is malformed or out of range."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LibraryError):
    """The resource does not exist for this owner."""

    status_code = status.HTTP_404_NOT_FOUND


class StorageError(LibraryError):
    """The database failed while serving the request."""


async def _library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    if isinstance(exc, StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Storage failure"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""
    app.add_exception_handler(LibraryError, _library_error_handler)
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)
