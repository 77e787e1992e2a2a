"""Session token issuing and verification (HS256 JWT)."""

from __future__ import annotations

import time
from typing import Any

from joserfc import jwt
from joserfc.errors import JoseError
from joserfc.jwk import OctKey

from victor_commons.exceptions import ServiceError


class TokenService:
    """
    Issues and verifies signed session tokens.

    Claims: ``sub`` (user id), ``email``, ``fullname``, ``role``,
    ``iat`` and ``exp``.
    """

    def __init__(self, secret: str, algorithm: str, expiry_seconds: int) -> None:
        self._key = OctKey.import_key(secret)
        self._algorithm = algorithm
        self._expiry_seconds = expiry_seconds
        self._claims_registry = jwt.JWTClaimsRegistry(
            sub={"essential": True},
            exp={"essential": True},
        )

    @property
    def expiry_seconds(self) -> int:
        """Token lifetime in seconds."""
        return self._expiry_seconds

    def issue(self, user: dict[str, Any]) -> str:
        """Issue a token for a user record."""
        issued_at = int(time.time())
        claims = {
            "sub": user["user_id"],
            "email": user["email"],
            "fullname": user["fullname"],
            "role": user["role"],
            "iat": issued_at,
            "exp": issued_at + self._expiry_seconds,
        }
        return jwt.encode({"alg": self._algorithm}, claims, self._key)

    def verify(self, token: str) -> dict[str, Any]:
        """
        Verify a token and return its claims.

        Raises:
            ServiceError: INVALID_TOKEN for a bad signature, malformed
                token, or expired token.
        """
        try:
            decoded = jwt.decode(token, self._key, algorithms=[self._algorithm])
            self._claims_registry.validate(decoded.claims)
        except (JoseError, ValueError) as exc:
            raise ServiceError(
                "INVALID_TOKEN",
                "Token is invalid or expired",
                401,
                {},
            ) from exc
        return dict(decoded.claims)
