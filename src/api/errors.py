"""Domain exceptions → HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from src.errors import (
    BackendError,
    BackendUnavailableError,
    InputValidationError,
    NotFoundError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

# First isinstance match wins: subclasses before their bases
_STATUS_CODES: dict[type[Exception], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    UnauthorizedError: status.HTTP_403_FORBIDDEN,
    InputValidationError: 422,
    BackendUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
    BackendError: status.HTTP_502_BAD_GATEWAY,
}


async def _handle_domain_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = next(
        code for cls, code in _STATUS_CODES.items() if isinstance(exc, cls)
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    for exc_class in _STATUS_CODES:
        app.add_exception_handler(exc_class, _handle_domain_error)
