from __future__ import annotations

from typing import List, Optional

from openproject_hal.client import OpenProjectClient, validate_model
from openproject_hal.models import HalCollection, User
from openproject_hal.pagination import fetch_all
from openproject_hal.tools.common import FilterQuery, paging_params

DEFAULT_PAGE_SIZE = 20
DEFAULT_FETCH_ALL_PAGE_SIZE = 100


class UserQuery(FilterQuery):
    """Filters for /api/v3/users (listing users needs admin rights)."""

    def with_status(self, status: str) -> "UserQuery":
        return self.where("status", "=", [status])

    def name_contains(self, text: str) -> "UserQuery":
        return self.where("name", "~", [text])

    def login_is(self, login: str) -> "UserQuery":
        return self.where("login", "=", [login])


async def get_users_page(
    client: OpenProjectClient,
    query: Optional[UserQuery] = None,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[User]:
    payload = await client.get(
        "/api/v3/users",
        params=paging_params(page_size, page, query),
        tool="users",
    )
    return validate_model(HalCollection[User], payload)


async def get_all_users(
    client: OpenProjectClient,
    query: Optional[UserQuery] = None,
    *,
    page_size: int = DEFAULT_FETCH_ALL_PAGE_SIZE,
    max_pages: Optional[int] = None,
) -> List[User]:
    async def fetch_page(page: int, size: int) -> HalCollection[User]:
        return await get_users_page(client, query, page_size=size, page=page)

    return await fetch_all(fetch_page, page_size=page_size, max_pages=max_pages)


async def get_user(client: OpenProjectClient, user_id: int) -> User:
    payload = await client.get(f"/api/v3/users/{user_id}", tool="users")
    return validate_model(User, payload)


async def get_current_user(client: OpenProjectClient) -> User:
    """The user the API key belongs to."""
    payload = await client.get("/api/v3/users/me", tool="users")
    return validate_model(User, payload)


__all__ = [
    "UserQuery",
    "get_users_page",
    "get_all_users",
    "get_user",
    "get_current_user",
]
