from __future__ import annotations

from typing import List, Optional

from openproject_hal.client import OpenProjectClient, validate_model
from openproject_hal.models import HalCollection, Version
from openproject_hal.pagination import fetch_all
from openproject_hal.tools.common import paging_params

DEFAULT_PAGE_SIZE = 20
DEFAULT_FETCH_ALL_PAGE_SIZE = 100


def _versions_url(project_id: Optional[int]) -> str:
    if project_id is None:
        return "/api/v3/versions"
    return f"/api/v3/projects/{project_id}/versions"


async def get_versions_page(
    client: OpenProjectClient,
    *,
    project_id: Optional[int] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[Version]:
    """
    One page of versions. With ``project_id`` the project's own endpoint is
    used, which also lists versions shared into that project.
    """
    payload = await client.get(
        _versions_url(project_id),
        params=paging_params(page_size, page),
        tool="versions",
    )
    return validate_model(HalCollection[Version], payload)


async def get_all_versions(
    client: OpenProjectClient,
    *,
    project_id: Optional[int] = None,
    page_size: int = DEFAULT_FETCH_ALL_PAGE_SIZE,
    max_pages: Optional[int] = None,
) -> List[Version]:
    async def fetch_page(page: int, size: int) -> HalCollection[Version]:
        return await get_versions_page(
            client, project_id=project_id, page_size=size, page=page
        )

    return await fetch_all(fetch_page, page_size=page_size, max_pages=max_pages)


async def get_version(client: OpenProjectClient, version_id: int) -> Version:
    payload = await client.get(f"/api/v3/versions/{version_id}", tool="versions")
    return validate_model(Version, payload)


__all__ = ["get_versions_page", "get_all_versions", "get_version"]
