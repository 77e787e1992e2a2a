"""ASGI middleware for request validation."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, cast

from victor_commons.exceptions import error_response

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send


# Endpoints that carry a JSON body. Action endpoints such as
# /api/tasks/{id}/accept take no body and are left to the router.
JSON_BODY_ROUTES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("POST", re.compile(r"^/api/signup$")),
    ("POST", re.compile(r"^/api/login$")),
    ("PUT", re.compile(r"^/api/users/[^/]+$")),
    ("POST", re.compile(r"^/api/tasks$")),
    ("PUT", re.compile(r"^/api/tasks/[^/]+$")),
    ("POST", re.compile(r"^/api/tasks/[^/]+/offers$")),
    ("POST", re.compile(r"^/api/tasks/[^/]+/review$")),
    ("POST", re.compile(r"^/api/chats/create$")),
    ("POST", re.compile(r"^/api/chats/[^/]+/messages$")),
)


def takes_json_body(method: str, path: str) -> bool:
    """True when the route reads a JSON request body."""
    return any(
        route_method == method and pattern.match(path) is not None
        for route_method, pattern in JSON_BODY_ROUTES
    )


class BodyTooLargeError(Exception):
    """The request body went past the configured limit."""


class RequestValidationMiddleware:
    """
    Rejects bad JSON requests before they reach a router.

    On routes that take a JSON body it answers 415 when the Content-Type
    is not JSON and 413 when the body is larger than ``max_body_size``.
    Every other request passes straight through, so unknown paths and
    methods still get the router's 404/405.
    """

    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not takes_json_body(
            cast("str", scope.get("method", "GET")),
            cast("str", scope.get("path", "")),
        ):
            await self.app(scope, receive, send)
            return

        headers = dict(cast("list[tuple[bytes, bytes]]", scope.get("headers", [])))
        content_type = headers.get(b"content-type", b"").decode("latin-1").lower()
        if not content_type.startswith("application/json"):
            response = error_response(
                415, "UNSUPPORTED_MEDIA_TYPE", "Content-Type must be application/json"
            )
            await response(scope, receive, send)
            return

        declared = headers.get(b"content-length", b"")
        try:
            if declared.isdigit() and int(declared) > self.max_body_size:
                raise BodyTooLargeError
            body = await self._read_body(receive)
        except BodyTooLargeError:
            response = error_response(
                413, "PAYLOAD_TOO_LARGE", "Request body exceeds maximum allowed size"
            )
            await response(scope, receive, send)
            return

        await self.app(scope, _replay(body), send)

    async def _read_body(self, receive: Receive) -> bytes:
        """Buffer the whole body, stopping as soon as it exceeds the limit."""
        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            chunk = cast("bytes", message.get("body", b""))
            size += len(chunk)
            if size > self.max_body_size:
                raise BodyTooLargeError
            chunks.append(chunk)
            more_body = bool(message.get("more_body", False))
        return b"".join(chunks)


def _replay(body: bytes) -> Receive:
    """A receive callable that hands the buffered body downstream once."""
    sent = False

    async def receive() -> Message:
        nonlocal sent
        if sent:
            return {"type": "http.disconnect"}
        sent = True
        message: dict[str, Any] = {"type": "http.request", "body": body, "more_body": False}
        return message

    return receive
