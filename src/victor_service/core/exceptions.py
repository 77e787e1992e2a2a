"""Exception handlers mapping every failure onto the error envelope."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from victor_commons.exceptions import ServiceError, error_response
from victor_commons.exceptions import (
    register_exception_handlers as register_handlers,
)
from victor_service.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request
    from fastapi.responses import JSONResponse

__all__ = ["ServiceError", "register_exception_handlers"]

# Router-level HTTP errors and the envelope code/message they map to
HTTP_ERROR_CODES: dict[int, tuple[str, str]] = {
    404: ("NOT_FOUND", "Resource not found"),
    405: ("METHOD_NOT_ALLOWED", "Method not allowed"),
}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Log a domain error and render it."""
    get_logger(__name__).warning(
        "Request rejected",
        extra={
            "error_code": exc.error,
            "status_code": exc.status_code,
            "method": request.method,
            "path": request.url.path,
        },
    )
    return exc.to_response()


async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Map routing errors (unknown path, wrong method) to the envelope."""
    error, message = HTTP_ERROR_CODES.get(exc.status_code, ("HTTP_ERROR", str(exc.detail)))
    return error_response(exc.status_code, error, message)


async def validation_exception_handler(
    _request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Report FastAPI parameter validation failures as VALIDATION_ERROR."""
    messages = [str(item.get("msg", "")) for item in exc.errors()]
    return error_response(422, "VALIDATION_ERROR", "Request validation failed", {"errors": messages})


async def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    """Log the traceback and hide it from the caller."""
    get_logger(__name__).exception(
        "Unhandled exception",
        extra={"method": request.method, "path": request.url.path},
    )
    return error_response(500, "internal_error", "An unexpected error occurred")


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app."""
    register_handlers(
        app,
        {
            ServiceError: service_error_handler,
            StarletteHTTPException: http_exception_handler,
            RequestValidationError: validation_exception_handler,
            Exception: unhandled_exception_handler,
        },
    )
