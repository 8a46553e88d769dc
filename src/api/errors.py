# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception handlers rendering every error as ``{"message", "details"}``.

- GradebookError subclasses answer with their own status code.
- HTTPException keeps its status; its detail becomes the message.
- Request validation failures are client errors (400).
- DatabaseError and anything else is a 500; the underlying message is only
  exposed when debug is on.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from src.core.config import get_settings
from src.domains.gradebook.exceptions import GradebookError

logger = logging.getLogger(__name__)


def error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the JSON error body shared by every handler."""
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"message": message, "details": details or {}}),
        headers=headers,
    )


async def gradebook_error_handler(request: Request, exc: GradebookError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Gradebook error on %s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info(
            "Rejected %s %s (%d): %s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.message,
        )
    return error_response(exc.status_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = {} if isinstance(exc.detail, str) else {"detail": exc.detail}
    return error_response(exc.status_code, message, details, getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # rejected input is not echoed; NaN and Infinity cannot be rendered as JSON
    errors = [
        {key: value for key, value in error.items() if key not in ("input", "ctx")}
        for error in exc.errors()
    ]
    missing = [
        ".".join(str(part) for part in error["loc"] if part != "body")
        for error in errors
        if error.get("type") == "missing"
    ]
    if missing:
        message = f"Missing required fields: {', '.join(missing)}"
    else:
        message = "Request validation failed"
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        message,
        {"errors": errors},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error handlers to the application.

    Args:
        app: FastAPI application.
    """
    app.add_exception_handler(GradebookError, gradebook_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
