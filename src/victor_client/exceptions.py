"""Client-side error types."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx


class ApiError(Exception):
    """The server answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        error: str | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error
        self.payload = payload

    @property
    def is_client_error(self) -> bool:
        """True for 4xx responses, which retrying elsewhere will not fix."""
        return 400 <= self.status_code < 500

    @classmethod
    def from_response(cls, response: httpx.Response) -> ApiError:
        """Build an error from a response, preferring the server's own message."""
        payload: Any = None
        try:
            payload = response.json()
        except ValueError:
            payload = response.text or None

        message = f"HTTP error: {response.status_code}"
        error = None
        if isinstance(payload, dict):
            error = payload.get("error") if isinstance(payload.get("error"), str) else None
            server_message = payload.get("message")
            if isinstance(server_message, str) and server_message:
                message = server_message
            elif error:
                message = error
        return cls(message, response.status_code, error=error, payload=payload)


class ApiUnavailableError(Exception):
    """No configured API server could be reached."""
