from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from openproject_hal.client import OpenProjectClient, validate_model
from openproject_hal.models import HalCollection, TimeEntry
from openproject_hal.pagination import fetch_all
from openproject_hal.payloads import DateLike
from openproject_hal.tools.common import (
    FilterQuery,
    FormValidationError,
    paging_params,
    validate_form,
)
from openproject_hal.utils.durations import iso_duration_to_minutes, parse_duration_string

DEFAULT_PAGE_SIZE = 20
DEFAULT_FETCH_ALL_PAGE_SIZE = 100
TIME_ENTRIES_URL = "/api/v3/time_entries"


class TimeEntryValidationError(FormValidationError):
    """The time entry /form pre-flight call reported validation errors."""


class TimeEntryQuery(FilterQuery):
    """Filters for /api/v3/time_entries."""

    @classmethod
    def for_project(cls, project_id: int) -> "TimeEntryQuery":
        return cls().where("project", "=", [project_id])

    def for_work_package(self, work_package_id: int) -> "TimeEntryQuery":
        return self.where("workPackage", "=", [work_package_id])

    def for_user(self, user_id: Any = "me") -> "TimeEntryQuery":
        return self.where("user", "=", [user_id])

    def spent_between(
        self, start: Optional[DateLike] = None, end: Optional[DateLike] = None
    ) -> "TimeEntryQuery":
        if start is not None and end is not None:
            return self.where("spentOn", "<>d", [start, end])
        if start is not None:
            return self.where("spentOn", ">=", [start])
        if end is not None:
            return self.where("spentOn", "<=", [end])
        return self


class TimeEntryCreateSpec(BaseModel):
    """
    A time entry to log. ``hours`` takes "2h 30m", "1.5h" or an ISO duration
    ("PT2H30M"); ``spent_on`` defaults to today.
    """

    work_package_id: int
    hours: str
    activity_id: Optional[int] = None
    project_id: Optional[int] = None
    spent_on: Optional[DateLike] = None
    comment: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("hours")
    @classmethod
    def _to_iso(cls, value: str) -> str:
        iso = value.strip().upper()
        if iso.startswith("P"):
            if iso_duration_to_minutes(iso) is None:
                raise ValueError(f"Not an ISO 8601 duration: {value!r}")
            return iso
        return parse_duration_string(value)


def build_time_entry_payload(spec: TimeEntryCreateSpec) -> Dict[str, Any]:
    spent_on = spec.spent_on if spec.spent_on is not None else date.today()
    payload: Dict[str, Any] = {
        "hours": spec.hours,
        "spentOn": spent_on.isoformat() if hasattr(spent_on, "isoformat") else str(spent_on),
    }
    if spec.comment is not None:
        payload["comment"] = {"format": "markdown", "raw": spec.comment}

    links: Dict[str, Dict[str, str]] = {
        "workPackage": {"href": f"/api/v3/work_packages/{spec.work_package_id}"}
    }
    if spec.project_id is not None:
        links["project"] = {"href": f"/api/v3/projects/{spec.project_id}"}
    if spec.activity_id is not None:
        links["activity"] = {"href": f"/api/v3/time_entries/activities/{spec.activity_id}"}
    payload["_links"] = links
    return payload


async def get_time_entries_page(
    client: OpenProjectClient,
    query: Optional[TimeEntryQuery] = None,
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    page: int = 1,
) -> HalCollection[TimeEntry]:
    payload = await client.get(
        TIME_ENTRIES_URL,
        params=paging_params(page_size, page, query),
        tool="time_entries",
    )
    return validate_model(HalCollection[TimeEntry], payload)


async def get_all_time_entries(
    client: OpenProjectClient,
    query: Optional[TimeEntryQuery] = None,
    *,
    page_size: int = DEFAULT_FETCH_ALL_PAGE_SIZE,
    max_pages: Optional[int] = None,
) -> List[TimeEntry]:
    async def fetch_page(page: int, size: int) -> HalCollection[TimeEntry]:
        return await get_time_entries_page(client, query, page_size=size, page=page)

    return await fetch_all(fetch_page, page_size=page_size, max_pages=max_pages)


async def get_time_entry(client: OpenProjectClient, time_entry_id: int) -> TimeEntry:
    payload = await client.get(f"{TIME_ENTRIES_URL}/{time_entry_id}", tool="time_entries")
    return validate_model(TimeEntry, payload)


async def create_time_entry(
    client: OpenProjectClient,
    spec: TimeEntryCreateSpec,
    *,
    validate: bool = True,
) -> TimeEntry:
    """Logs time on a work package; the body is checked against /form first."""
    payload = build_time_entry_payload(spec)
    if validate:
        await validate_form(
            client,
            f"{TIME_ENTRIES_URL}/form",
            payload,
            tool="time_entries",
            error_cls=TimeEntryValidationError,
        )
    created = await client.post(TIME_ENTRIES_URL, json=payload, tool="time_entries")
    return validate_model(TimeEntry, created)


__all__ = [
    "TimeEntryQuery",
    "TimeEntryCreateSpec",
    "TimeEntryValidationError",
    "build_time_entry_payload",
    "get_time_entries_page",
    "get_all_time_entries",
    "get_time_entry",
    "create_time_entry",
]
