from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from openproject_hal.client import (
    OpenProjectClient,
    OpenProjectHTTPError,
    validate_model,
)
from openproject_hal.facade import WorkPackageFacade
from openproject_hal.models import HalCollection, Relation, WorkPackage
from openproject_hal.pagination import fetch_all
from openproject_hal.payloads import WorkPackageChangeSet, build_work_package_payload
from openproject_hal.tools.common import (
    FilterQuery,
    FormValidationError,
    paging_params,
    validate_form,
)
from openproject_hal.tools.relations import create_relation, delete_relation

DEFAULT_PAGE_SIZE = 20
DEFAULT_FETCH_ALL_PAGE_SIZE = 100


class WorkPackageValidationError(FormValidationError):
    """The work package /form pre-flight call reported validation errors."""


class WorkPackageQuery(FilterQuery):
    """Filters for the work package endpoints."""

    @classmethod
    def for_project(cls, project_id: int) -> "WorkPackageQuery":
        return cls().where("project", "=", [str(project_id)])

    def assigned_to_me(self) -> "WorkPackageQuery":
        return self.where("assigned_to_id", "=", ["me"])

    def status_open(self) -> "WorkPackageQuery":
        return self.where("status_id", "o", [])

    def subject_contains(self, text: str) -> "WorkPackageQuery":
        return self.where("subject", "~", [text])


async def get_work_packages_page(
    client: OpenProjectClient,
    query: Optional[WorkPackageQuery] = None,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[WorkPackage]:
    """
    Fetch one page of work packages (``offset`` is the 1-based page number).
    Embedded schemas are imported into the client's registry first; a bad
    schema section never fails the request.
    """
    payload = await client.get(
        "/api/v3/work_packages",
        params=paging_params(page_size, page, query),
        tool="work_packages",
    )
    client.custom_fields.import_from_collection_payload(payload)
    return validate_model(HalCollection[WorkPackage], payload)


async def get_work_package(client: OpenProjectClient, wp_id: int) -> WorkPackage:
    payload = await client.get(f"/api/v3/work_packages/{wp_id}", tool="work_packages")
    return validate_model(WorkPackage, payload)


async def get_all_work_packages(
    client: OpenProjectClient,
    query: Optional[WorkPackageQuery] = None,
    *,
    page_size: int = DEFAULT_FETCH_ALL_PAGE_SIZE,
    max_pages: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[WorkPackage]:
    async def fetch_page(page: int, size: int) -> HalCollection[WorkPackage]:
        return await get_work_packages_page(client, query, page_size=size, page=page)

    return await fetch_all(
        fetch_page,
        page_size=page_size,
        start_page=1,
        max_pages=max_pages,
        cancel_event=cancel_event,
    )


async def get_all_work_packages_for_project(
    client: OpenProjectClient,
    project_id: int,
    *,
    page_size: int = DEFAULT_FETCH_ALL_PAGE_SIZE,
) -> List[WorkPackage]:
    return await get_all_work_packages(
        client, WorkPackageQuery.for_project(project_id), page_size=page_size
    )


async def get_work_package_facades(
    client: OpenProjectClient,
    query: Optional[WorkPackageQuery] = None,
    *,
    page_size: int = DEFAULT_FETCH_ALL_PAGE_SIZE,
) -> List[WorkPackageFacade]:
    """All matching work packages, each wrapped with the session's registry."""
    work_packages = await get_all_work_packages(client, query, page_size=page_size)
    return [WorkPackageFacade(wp, client.custom_fields) for wp in work_packages]


async def import_work_package_schema(
    client: OpenProjectClient, project_id: int, type_id: int
) -> int:
    """Import custom field definitions from /api/v3/work_packages/schemas/{project}-{type}."""
    schema = await client.get(
        f"/api/v3/work_packages/schemas/{project_id}-{type_id}", tool="work_packages"
    )
    return client.custom_fields.import_from_schema(schema)


async def validate_work_package(
    client: OpenProjectClient,
    payload: Dict[str, Any],
    *,
    wp_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Pre-flight the payload against the create or update form endpoint.
    Raises WorkPackageValidationError when the form reports errors.
    """
    url = (
        f"/api/v3/work_packages/{wp_id}/form"
        if wp_id is not None
        else "/api/v3/work_packages/form"
    )
    return await validate_form(
        client, url, payload, tool="work_packages", error_cls=WorkPackageValidationError
    )


async def _apply_relations(
    client: OpenProjectClient, wp_id: int, change_set: WorkPackageChangeSet
) -> List[Relation]:
    created: List[Relation] = []
    for spec in change_set.add_relations:
        created.append(await create_relation(client, wp_id, spec))
    for relation_id in change_set.delete_relation_ids:
        await delete_relation(client, relation_id)
    return created


async def create_work_package(
    client: OpenProjectClient,
    change_set: WorkPackageChangeSet,
    *,
    validate: bool = True,
) -> WorkPackage:
    if change_set.project_id is None:
        raise ValueError("project_id is required to create a work package.")

    payload = build_work_package_payload(change_set, client.custom_fields)
    if validate:
        await validate_work_package(client, payload)

    created = await client.post("/api/v3/work_packages", json=payload, tool="work_packages")
    wp = validate_model(WorkPackage, created)
    await _apply_relations(client, wp.id, change_set)
    return wp


async def update_work_package(
    client: OpenProjectClient,
    wp_id: int,
    change_set: WorkPackageChangeSet,
    *,
    validate: bool = True,
) -> WorkPackage:
    """
    PATCH a work package. When the change-set carries no lockVersion the
    current one is fetched first so the server can still reject stale writes.
    """
    if change_set.lock_version is None:
        current = await get_work_package(client, wp_id)
        if current.lock_version is None:
            raise OpenProjectHTTPError(
                status_code=422,
                method="GET",
                url=f"{client.base_url}/api/v3/work_packages/{wp_id}",
                message="lockVersion missing from work package response",
            )
        change_set = change_set.model_copy(update={"lock_version": current.lock_version})

    payload = build_work_package_payload(change_set, client.custom_fields)
    if validate:
        await validate_work_package(client, payload, wp_id=wp_id)

    try:
        patched = await client.patch(
            f"/api/v3/work_packages/{wp_id}", json=payload, tool="work_packages"
        )
    except OpenProjectHTTPError as exc:
        if exc.status_code == 409:
            raise OpenProjectHTTPError(
                status_code=409,
                method="PATCH",
                url=f"{client.base_url}/api/v3/work_packages/{wp_id}",
                message="Update conflict: lockVersion is outdated. Re-fetch and retry.",
                response_json=exc.response_json,
                response_text=exc.response_text,
            ) from exc
        raise

    wp = validate_model(WorkPackage, patched)
    await _apply_relations(client, wp_id, change_set)
    return wp


__all__ = [
    "WorkPackageQuery",
    "WorkPackageValidationError",
    "create_work_package",
    "get_all_work_packages",
    "get_all_work_packages_for_project",
    "get_work_package",
    "get_work_package_facades",
    "get_work_packages_page",
    "import_work_package_schema",
    "update_work_package",
    "validate_work_package",
]
