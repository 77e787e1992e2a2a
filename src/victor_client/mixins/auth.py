"""Auth mixin: signup, login, and user profiles."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from victor_client.api_manager import TOKEN_KEY

if TYPE_CHECKING:
    from victor_client.api_manager import ApiManager


class _AuthClient(Protocol):
    api: ApiManager


class AuthMixin:
    """Account and profile calls. Login and signup keep the session token."""

    async def signup(self: _AuthClient, fullname: str, email: str, password: str) -> dict[str, Any]:
        """Register and store the returned session token."""
        result = await self.api.post(
            "/api/signup",
            {"fullname": fullname, "email": email, "password": password},
        )
        self.api.state.set(TOKEN_KEY, result["token"])
        return result

    async def login(self: _AuthClient, email: str, password: str) -> dict[str, Any]:
        """Log in and store the returned session token."""
        result = await self.api.post("/api/login", {"email": email, "password": password})
        self.api.state.set(TOKEN_KEY, result["token"])
        return result

    def logout(self: _AuthClient) -> None:
        """Forget the session token."""
        self.api.state.delete(TOKEN_KEY)

    async def me(self: _AuthClient) -> dict[str, Any]:
        """The logged-in user's record."""
        return await self.api.get("/api/users/me")

    async def get_user(self: _AuthClient, user_id: str) -> dict[str, Any]:
        """A user's profile."""
        return await self.api.get(f"/api/users/{user_id}")

    async def update_user(self: _AuthClient, user_id: str, **fields: Any) -> dict[str, Any]:
        """Update profile fields."""
        return await self.api.put(f"/api/users/{user_id}", fields)

    async def user_reviews(self: _AuthClient, user_id: str) -> dict[str, Any]:
        """Reviews a user received, with the average rating."""
        return await self.api.get(f"/api/users/{user_id}/reviews")
