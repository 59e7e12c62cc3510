from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .custom_fields import CustomFieldRegistry, custom_field_key

DateLike = Union[date, str]


class RelationCreateSpec(BaseModel):
    to_work_package_id: int
    type: str = "relates"  # relates, duplicates, follows, precedes, ...
    lag: Optional[int] = 0
    description: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class WorkPackageChangeSet(BaseModel):
    """Fields to write on a work package; None means 'leave untouched'."""

    subject: Optional[str] = None
    description_markdown: Optional[str] = None
    start_date: Optional[DateLike] = None
    due_date: Optional[DateLike] = None
    lock_version: Optional[int] = None

    project_id: Optional[int] = None
    type_id: Optional[int] = None
    status_id: Optional[int] = None
    assignee_id: Optional[int] = None

    # customField id -> scalar / object / list value
    custom_field_values: Dict[int, Any] = Field(default_factory=dict)
    # customField id -> hrefs, for option / user / version reference fields
    custom_field_link_hrefs: Dict[int, List[str]] = Field(default_factory=dict)

    add_relations: List[RelationCreateSpec] = Field(default_factory=list)
    delete_relation_ids: List[int] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


def _iso(value: DateLike) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _href(resource: str, resource_id: int) -> Dict[str, str]:
    return {"href": f"/api/v3/{resource}/{resource_id}"}


def build_work_package_payload(
    change_set: WorkPackageChangeSet, registry: Optional[CustomFieldRegistry] = None
) -> Dict[str, Any]:
    """
    Builds the HAL body for POST/PATCH /api/v3/work_packages (and the matching
    /form validation call). Custom field keys follow the registry's declared
    plurality; ids the registry does not know are written as single-valued.
    """
    if change_set is None:
        raise ValueError("change_set must be provided.")

    def multi(cf_id: int) -> bool:
        return registry.is_multi(cf_id) if registry is not None else False

    payload: Dict[str, Any] = {}

    if change_set.subject is not None:
        payload["subject"] = change_set.subject
    if change_set.description_markdown is not None:
        payload["description"] = {
            "format": "markdown",
            "raw": change_set.description_markdown,
        }
    if change_set.start_date is not None:
        payload["startDate"] = _iso(change_set.start_date)
    if change_set.due_date is not None:
        payload["dueDate"] = _iso(change_set.due_date)
    if change_set.lock_version is not None:
        payload["lockVersion"] = change_set.lock_version

    for cf_id, value in change_set.custom_field_values.items():
        payload[custom_field_key(cf_id, multi=multi(cf_id))] = value

    links: Dict[str, Any] = {}
    if change_set.project_id is not None:
        links["project"] = _href("projects", change_set.project_id)
    if change_set.type_id is not None:
        links["type"] = _href("types", change_set.type_id)
    if change_set.status_id is not None:
        links["status"] = _href("statuses", change_set.status_id)
    if change_set.assignee_id is not None:
        links["assignee"] = _href("users", change_set.assignee_id)

    for cf_id, hrefs in change_set.custom_field_link_hrefs.items():
        href_objects = [{"href": href} for href in hrefs]
        if multi(cf_id):
            links[custom_field_key(cf_id, multi=True)] = href_objects
        else:
            # single-valued reference fields take a bare link object, not an array
            links[custom_field_key(cf_id, multi=False)] = (
                href_objects[0] if href_objects else None
            )

    if links:
        payload["_links"] = links

    return payload


def build_relation_payload(spec: RelationCreateSpec) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "type": spec.type,
        "_links": {"to": _href("work_packages", spec.to_work_package_id)},
    }
    if spec.description is not None:
        payload["description"] = spec.description
    if spec.lag is not None:
        payload["lag"] = spec.lag
    return payload


__all__ = [
    "RelationCreateSpec",
    "WorkPackageChangeSet",
    "build_relation_payload",
    "build_work_package_payload",
]
