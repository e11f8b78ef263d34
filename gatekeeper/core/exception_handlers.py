"""Global exception handlers for consistent error responses.

Every error leaves the API in the same envelope:

    {"error": {"code": ..., "message": ..., "messageLocalized": ..., "details": ...}}
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gatekeeper.core.exceptions import (
    AppException,
    InternalError,
    InvalidInputError,
    RateLimitError,
)

logger = logging.getLogger("gatekeeper.exception")


def _error_response(exc: AppException) -> JSONResponse:
    headers: dict[str, str] | None = None
    if isinstance(exc, RateLimitError) and exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_payload(), headers=headers
    )


def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all AppException subclasses."""
    extra = {
        "method": request.method,
        "path": request.url.path,
        "status_code": exc.status_code,
        "error_type": exc.error_type,
    }
    if exc.status_code >= 500:
        logger.error("AppException: %s - %s", exc.error_type, exc.message, extra=extra)
    else:
        logger.info("AppException: %s - %s", exc.error_type, exc.message, extra=extra)
    return _error_response(exc)


def http_exception_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle framework HTTP errors (404 routes, 405 methods) in the same envelope."""
    error = AppException(str(exc.detail), message_localized=str(exc.detail))
    error.status_code = exc.status_code
    error.error_type = "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content=error.to_payload(),
        headers=getattr(exc, "headers", None),
    )


def validation_exception_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as InvalidInput (400)."""
    fields: list[dict[str, str]] = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"] if loc != "body")
        fields.append({"field": field, "message": error["msg"]})

    message = "; ".join(
        f"{item['field']}: {item['message']}" if item["field"] else item["message"]
        for item in fields
    )
    return _error_response(InvalidInputError(message, details={"fields": fields}))


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected errors."""
    logger.error(
        "Unhandled exception: %s %s - %s",
        request.method,
        request.url.path,
        exc,
        extra={"method": request.method, "path": request.url.path, "status_code": 500},
        exc_info=True,
    )
    return _error_response(InternalError())


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
