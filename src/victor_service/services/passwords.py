"""Password hashing with scrypt, plus verification of legacy SHA-256 digests."""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import re

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

_SCHEME = "scrypt"
_SALT_BYTES = 16
_KEY_BYTES = 32
_LEGACY_SHA256 = re.compile(r"^[0-9a-f]{64}$")


class PasswordHasher:
    """Hashes and verifies user passwords."""

    def __init__(self, n: int, r: int, p: int) -> None:
        self._n = n
        self._r = r
        self._p = p

    def hash(self, password: str) -> str:
        """Hash a password into the self-describing scrypt format."""
        salt = os.urandom(_SALT_BYTES)
        kdf = Scrypt(salt=salt, length=_KEY_BYTES, n=self._n, r=self._r, p=self._p)
        derived = kdf.derive(password.encode())
        return "$".join(
            (
                _SCHEME,
                str(self._n),
                str(self._r),
                str(self._p),
                base64.b64encode(salt).decode(),
                base64.b64encode(derived).decode(),
            )
        )

    def verify(self, password: str, stored: str) -> bool:
        """
        Check a password against a stored hash.

        Accepts the scrypt format produced by hash() and bare lowercase
        SHA-256 hex digests left over from the seeded demo data.
        """
        if _LEGACY_SHA256.match(stored):
            digest = hashlib.sha256(password.encode()).hexdigest()
            return hmac.compare_digest(digest, stored)

        parts = stored.split("$")
        if len(parts) != 6 or parts[0] != _SCHEME:
            return False
        try:
            n, r, p = int(parts[1]), int(parts[2]), int(parts[3])
            salt = base64.b64decode(parts[4])
            expected = base64.b64decode(parts[5])
        except ValueError:
            return False

        kdf = Scrypt(salt=salt, length=len(expected), n=n, r=r, p=p)
        try:
            kdf.verify(password.encode(), expected)
        except InvalidKey:
            return False
        return True

    def needs_rehash(self, stored: str) -> bool:
        """True when the stored hash is a legacy digest or uses other scrypt costs."""
        parts = stored.split("$")
        if len(parts) != 6 or parts[0] != _SCHEME:
            return True
        return parts[1:4] != [str(self._n), str(self._r), str(self._p)]
