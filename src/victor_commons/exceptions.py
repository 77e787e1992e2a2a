"""Shared service error type, error envelope, and handler registration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastapi import FastAPI
    from starlette.types import ExceptionHandler


class ServiceError(Exception):
    """
    Domain error rendered as the standard error envelope.

    Attributes:
        error: Machine-readable error code
        message: Human-readable message
        status_code: HTTP status code
        details: Extra context for the caller
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, Any] = details if details is not None else {}

    def to_response(self) -> JSONResponse:
        """Render this error as a JSON response."""
        return error_response(self.status_code, self.error, self.message, self.details)


def error_envelope(error: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Build the ``{error, message, details}`` body shared by every error."""
    return {"error": error, "message": message, "details": details or {}}


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """JSON response carrying the error envelope."""
    return JSONResponse(status_code=status_code, content=error_envelope(error, message, details))


def register_exception_handlers(
    app: FastAPI,
    handlers: dict[type[Exception], Callable[..., Any]],
) -> None:
    """Register each exception class with its handler."""
    for exc_class, handler in handlers.items():
        app.add_exception_handler(exc_class, cast("ExceptionHandler", handler))
