from __future__ import annotations

from typing import List, Optional

from openproject_hal.client import OpenProjectClient, validate_model
from openproject_hal.models import HalCollection, Project
from openproject_hal.pagination import fetch_all
from openproject_hal.tools.common import paging_params

DEFAULT_PAGE_SIZE = 10


async def get_projects_page(
    client: OpenProjectClient,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[Project]:
    payload = await client.get(
        "/api/v3/projects",
        params=paging_params(page_size, page),
        tool="projects",
    )
    return validate_model(HalCollection[Project], payload)


async def get_all_projects(
    client: OpenProjectClient,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: Optional[int] = None,
) -> List[Project]:
    """Every visible project, walking the collection page by page."""

    async def fetch_page(page: int, size: int) -> HalCollection[Project]:
        return await get_projects_page(client, page_size=size, page=page)

    return await fetch_all(fetch_page, page_size=page_size, max_pages=max_pages)


__all__ = ["get_projects_page", "get_all_projects"]
