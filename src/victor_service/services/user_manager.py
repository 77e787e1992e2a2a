"""Account registration, login, session resolution, and profiles."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from victor_commons.exceptions import ServiceError
from victor_service.logging import get_logger
from victor_service.services.common import (
    is_admin,
    new_id,
    now_iso,
    optional_string,
    require_string,
)
from victor_service.services.user_store import DuplicateEmailError

if TYPE_CHECKING:
    from victor_service.services.passwords import PasswordHasher
    from victor_service.services.review_manager import ReviewManager
    from victor_service.services.token_service import TokenService
    from victor_service.services.user_store import UserStore

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_PROFILE_FIELDS: frozenset[str] = frozenset(
    {"fullname", "phone", "bio", "location", "skills", "profile_pic"}
)


class UserManager:
    """
    Owns user accounts and sessions.

    Passwords are hashed by PasswordHasher and sessions are signed
    tokens from TokenService. Rating summaries come from ReviewManager.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        reviews: ReviewManager,
        min_password_length: int,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._reviews = reviews
        self._min_password_length = min_password_length
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    @staticmethod
    def _public_user(user: dict[str, Any], *, include_private: bool) -> dict[str, Any]:
        public = {
            "user_id": user["user_id"],
            "fullname": user["fullname"],
            "role": user["role"],
            "bio": user["bio"],
            "location": user["location"],
            "skills": user["skills"],
            "profile_pic": user["profile_pic"],
            "created_at": user["created_at"],
        }
        if include_private:
            public["email"] = user["email"]
            public["phone"] = user["phone"]
            public["updated_at"] = user["updated_at"]
        return public

    def _session_response(self, user: dict[str, Any]) -> dict[str, Any]:
        return {
            "token": self._tokens.issue(user),
            "expires_in": self._tokens.expiry_seconds,
            "user_id": user["user_id"],
            "username": user["fullname"],
            "user": self._public_user(user, include_private=True),
        }

    def _require_user(self, user_id: str) -> dict[str, Any]:
        user = self._store.get_user(user_id)
        if user is None:
            raise ServiceError("USER_NOT_FOUND", "User not found", 404, {"user_id": user_id})
        return user

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def signup(self, data: dict[str, Any]) -> dict[str, Any]:
        """Register a new account and open a session for it."""
        fullname = require_string(data, "fullname")
        email = require_string(data, "email")
        password = data.get("password")
        if not isinstance(password, str) or password == "":
            raise ServiceError(
                "INVALID_PAYLOAD",
                "Field 'password' is required and must be a non-empty string",
                400,
                {"field": "password"},
            )

        if not _EMAIL_RE.match(email):
            raise ServiceError("INVALID_EMAIL", "Email address is not valid", 400, {})

        if len(password) < self._min_password_length:
            raise ServiceError(
                "PASSWORD_TOO_SHORT",
                f"Password must be at least {self._min_password_length} characters",
                400,
                {"min_length": self._min_password_length},
            )

        if self._store.get_user_by_email(email) is not None:
            raise ServiceError("EMAIL_EXISTS", "Email already registered", 409, {})

        now = now_iso()
        user = {
            "user_id": new_id("u"),
            "fullname": fullname,
            "email": email,
            "password_hash": self._hasher.hash(password),
            "role": "user",
            "phone": None,
            "bio": None,
            "location": None,
            "skills": [],
            "profile_pic": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            self._store.insert_user(user)
        except DuplicateEmailError as exc:
            raise ServiceError("EMAIL_EXISTS", "Email already registered", 409, {}) from exc

        self._logger.info("User registered", extra={"user_id": user["user_id"]})
        return self._session_response(user)

    def login(self, data: dict[str, Any]) -> dict[str, Any]:
        """Check credentials and open a session."""
        email = require_string(data, "email")
        password = data.get("password")
        if not isinstance(password, str) or password == "":
            raise ServiceError(
                "INVALID_PAYLOAD",
                "Field 'password' is required and must be a non-empty string",
                400,
                {"field": "password"},
            )

        user = self._store.get_user_by_email(email)
        if user is None or not self._hasher.verify(password, user["password_hash"]):
            self._logger.info("Login rejected", extra={"reason": "invalid_credentials"})
            raise ServiceError("INVALID_CREDENTIALS", "Invalid email or password", 401, {})

        if self._hasher.needs_rehash(user["password_hash"]):
            self._store.update_user(
                user["user_id"],
                {"password_hash": self._hasher.hash(password), "updated_at": now_iso()},
            )
            self._logger.info("Password hash upgraded", extra={"user_id": user["user_id"]})

        return self._session_response(user)

    def authenticate(self, token: str) -> dict[str, Any]:
        """Resolve a bearer token to the full user record."""
        claims = self._tokens.verify(token)
        user = self._store.get_user(str(claims["sub"]))
        if user is None:
            raise ServiceError("INVALID_TOKEN", "Token is invalid or expired", 401, {})
        return user

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_me(self, user: dict[str, Any]) -> dict[str, Any]:
        """Return the caller's own record."""
        profile = self._public_user(user, include_private=True)
        profile["rating"] = self._reviews.rating_summary(user["user_id"])
        return profile

    def get_profile(self, user_id: str, viewer: dict[str, Any]) -> dict[str, Any]:
        """Return a user's profile; contact fields only for self or admins."""
        user = self._require_user(user_id)
        include_private = viewer["user_id"] == user_id or is_admin(viewer)
        profile = self._public_user(user, include_private=include_private)
        profile["rating"] = self._reviews.rating_summary(user_id)
        return profile

    def update_profile(
        self,
        user_id: str,
        viewer: dict[str, Any],
        data: dict[str, Any],
    ) -> dict[str, Any]:
        """Update the editable profile fields of a user."""
        if viewer["user_id"] != user_id and not is_admin(viewer):
            raise ServiceError("FORBIDDEN", "You can only update your own profile", 403, {})

        unknown = sorted(set(data) - _PROFILE_FIELDS)
        if unknown:
            raise ServiceError(
                "INVALID_PAYLOAD",
                "Only profile fields can be updated",
                400,
                {"fields": unknown},
            )

        self._require_user(user_id)

        updates: dict[str, Any] = {}
        if "fullname" in data:
            updates["fullname"] = require_string(data, "fullname")
        for field_name in ("phone", "bio", "location", "profile_pic"):
            if field_name in data:
                updates[field_name] = optional_string(data, field_name)
        if "skills" in data:
            skills = data["skills"]
            if not isinstance(skills, list) or not all(isinstance(s, str) for s in skills):
                raise ServiceError(
                    "INVALID_PAYLOAD",
                    "Field 'skills' must be a list of strings",
                    400,
                    {"field": "skills"},
                )
            updates["skills"] = [skill.strip() for skill in skills if skill.strip()]

        if updates:
            updates["updated_at"] = now_iso()
            self._store.update_user(user_id, updates)
            self._logger.info(
                "Profile updated",
                extra={"user_id": user_id, "fields": sorted(updates)},
            )

        return self._public_user(self._require_user(user_id), include_private=True)

    def get_user_reviews(self, user_id: str) -> dict[str, Any]:
        """Return the reviews a user has received with their rating summary."""
        self._require_user(user_id)
        summary = self._reviews.rating_summary(user_id)
        return {
            "user_id": user_id,
            "average_rating": summary["average_rating"],
            "review_count": summary["review_count"],
            "reviews": self._reviews.list_user_reviews(user_id),
        }

    def count_users(self) -> int:
        """Count registered users."""
        return self._store.count_users()

    def close(self) -> None:
        """Close the underlying store."""
        self._store.close()
