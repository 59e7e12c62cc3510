from __future__ import annotations

from typing import Optional

from openproject_hal.client import OpenProjectClient, validate_model
from openproject_hal.models import HalCollection, Relation, WorkPackage
from openproject_hal.payloads import RelationCreateSpec, build_relation_payload

DEFAULT_PAGE_SIZE = 100


async def get_relations_for_work_package(
    client: OpenProjectClient,
    work_package: WorkPackage,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[Relation]:
    """
    One page of relations of a work package, following its ``relations`` link.
    Unlike most lookups this one requires the link to exist.
    """
    href = work_package.link_href("relations")
    if not href:
        raise ValueError(f"Work package {work_package.id} has no relations link.")

    payload = await client.follow(
        href, params={"pageSize": page_size, "offset": page}, tool="relations"
    )
    return validate_model(HalCollection[Relation], payload)


async def list_relations(
    client: OpenProjectClient,
    *,
    filters: Optional[str] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[Relation]:
    params = {"pageSize": page_size, "offset": page}
    if filters:
        params["filters"] = filters
    payload = await client.get("/api/v3/relations", params=params, tool="relations")
    return validate_model(HalCollection[Relation], payload)


async def create_relation(
    client: OpenProjectClient, from_work_package_id: int, spec: RelationCreateSpec
) -> Relation:
    payload = await client.post(
        f"/api/v3/work_packages/{from_work_package_id}/relations",
        json=build_relation_payload(spec),
        tool="relations",
    )
    return validate_model(Relation, payload)


async def delete_relation(client: OpenProjectClient, relation_id: int) -> None:
    await client.delete(f"/api/v3/relations/{relation_id}", tool="relations")


__all__ = [
    "create_relation",
    "delete_relation",
    "get_relations_for_work_package",
    "list_relations",
]
