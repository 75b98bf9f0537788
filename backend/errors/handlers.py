"""
Error handling utilities for EduConnect.

Maps the exception hierarchy onto HTTP status codes and installs
FastAPI exception handlers so routes can simply raise.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .codes import ErrorCode
from .exceptions import (
    ConflictError,
    EduConnectError,
    NotFoundError,
    ProviderError,
    StoreReadError,
    StoreWriteError,
    ValidationError,
)
from .response import error_response

logger = logging.getLogger(__name__)


def status_for(error: Exception) -> int:
    """Return the HTTP status code for an exception."""
    if isinstance(error, (ValidationError, ConflictError)):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (StoreWriteError, StoreReadError, ProviderError)):
        return 503
    return 500


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Example:
        >>> log_error(logger, err, context="Posts")
        # Logs: "[Posts] NOT_FOUND_POST: Post not found"
    """
    if isinstance(error, EduConnectError):
        message = f"{error.code.value}: {error.message}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers that turn raised errors into JSON envelopes."""

    @app.exception_handler(EduConnectError)
    async def _handle_educonnect_error(request: Request, exc: EduConnectError):
        status = status_for(exc)
        if status >= 500:
            log_error(logger, exc, context=request.url.path)
        else:
            logger.info(f"[{request.url.path}] {exc.code.value}: {exc.message}")
        return JSONResponse(status_code=status, content=error_response(exc, route=request.url.path))

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        log_error(logger, exc, context=request.url.path)
        return JSONResponse(status_code=500, content=error_response(exc, route=request.url.path))


__all__ = ["ErrorCode", "log_error", "register_exception_handlers", "status_for"]
