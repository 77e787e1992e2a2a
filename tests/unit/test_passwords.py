"""Password hashing tests."""

from __future__ import annotations

import hashlib

import pytest

from victor_service.services.passwords import PasswordHasher


@pytest.fixture
def hasher() -> PasswordHasher:
    """A hasher with cheap scrypt costs."""
    return PasswordHasher(n=1024, r=8, p=1)


@pytest.mark.unit
class TestPasswordHasher:
    """Scrypt hashing and legacy digest support."""

    def test_hash_format_and_verify(self, hasher: PasswordHasher) -> None:
        """Hashes are self-describing and verify the original password only."""
        stored = hasher.hash("secret123")
        parts = stored.split("$")
        assert parts[:4] == ["scrypt", "1024", "8", "1"]
        assert hasher.verify("secret123", stored)
        assert not hasher.verify("secret124", stored)

    def test_salted(self, hasher: PasswordHasher) -> None:
        """The same password hashes differently each time."""
        assert hasher.hash("secret123") != hasher.hash("secret123")

    def test_legacy_sha256(self, hasher: PasswordHasher) -> None:
        """Bare SHA-256 hex digests still verify and want a rehash."""
        legacy = hashlib.sha256(b"secret123").hexdigest()
        assert hasher.verify("secret123", legacy)
        assert not hasher.verify("wrong", legacy)
        assert hasher.needs_rehash(legacy)

    def test_needs_rehash_on_cost_change(self, hasher: PasswordHasher) -> None:
        """Hashes made with other costs are upgraded; current ones are kept."""
        stored = hasher.hash("secret123")
        assert not hasher.needs_rehash(stored)
        assert PasswordHasher(n=2048, r=8, p=1).needs_rehash(stored)
        assert PasswordHasher(n=2048, r=8, p=1).verify("secret123", stored)

    @pytest.mark.parametrize("stored", ["", "plain", "scrypt$x$8$1$aa$bb", "bcrypt$1$2$3$4$5"])
    def test_garbage_hashes_never_verify(self, hasher: PasswordHasher, stored: str) -> None:
        """Malformed stored values fail closed."""
        assert not hasher.verify("secret123", stored)
