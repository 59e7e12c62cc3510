import json
from datetime import date

import pytest
import respx
from httpx import Response
from openproject_hal.tools.time_entries import (
    TimeEntryCreateSpec,
    TimeEntryQuery,
    TimeEntryValidationError,
    build_time_entry_payload,
    create_time_entry,
    get_all_time_entries,
    get_time_entries_page,
    get_time_entry,
)
from openproject_hal.utils.durations import DurationParseError
from pydantic import ValidationError

TE_URL = "https://mock-op.com/api/v3/time_entries"

EMPTY_FORM = {"_type": "Form", "_embedded": {"payload": {}, "validationErrors": {}}}


def _entry(i, hours="PT1H30M"):
    return {
        "_type": "TimeEntry",
        "id": i,
        "hours": hours,
        "spentOn": "2026-02-03",
        "comment": {"format": "plain", "raw": "Pairing"},
        "_links": {
            "self": {"href": f"/api/v3/time_entries/{i}"},
            "project": {"href": "/api/v3/projects/5"},
            "workPackage": {"href": "/api/v3/work_packages/42"},
            "user": {"href": "/api/v3/users/3"},
            "activity": {"href": "/api/v3/time_entries/activities/1"},
        },
    }


def _page(ids, *, total, offset, page_size=2):
    return {
        "_type": "Collection",
        "total": total,
        "count": len(ids),
        "pageSize": page_size,
        "offset": offset,
        "_embedded": {"elements": [_entry(i) for i in ids]},
    }


def test_query_date_range_filters():
    q = TimeEntryQuery.for_project(5).for_user().spent_between(date(2026, 2, 1), "2026-02-28")

    assert json.loads(q.build()) == [
        {"project": {"operator": "=", "values": ["5"]}},
        {"user": {"operator": "=", "values": ["me"]}},
        {"spentOn": {"operator": "<>d", "values": ["2026-02-01", "2026-02-28"]}},
    ]
    assert json.loads(TimeEntryQuery().spent_between(start="2026-02-01").build()) == [
        {"spentOn": {"operator": ">=", "values": ["2026-02-01"]}}
    ]
    assert not TimeEntryQuery().spent_between()


@pytest.mark.asyncio
@respx.mock
async def test_page_maps_links_and_duration(client):
    route = respx.get(TE_URL).mock(return_value=Response(200, json=_page([1], total=1, offset=1)))

    async with client:
        page = await get_time_entries_page(client, TimeEntryQuery().for_work_package(42))

    assert json.loads(route.calls[0].request.url.params["filters"]) == [
        {"workPackage": {"operator": "=", "values": ["42"]}}
    ]
    entry = page.elements[0]
    assert entry.minutes == 90
    assert entry.work_package_id == 42
    assert entry.project_id == 5
    assert entry.user_id == 3
    assert entry.activity_id == 1
    assert entry.comment.raw == "Pairing"


@pytest.mark.asyncio
@respx.mock
async def test_get_all_time_entries_walks_pages(client):
    respx.get(TE_URL).mock(
        side_effect=[
            Response(200, json=_page([1, 2], total=3, offset=1)),
            Response(200, json=_page([3], total=3, offset=2)),
        ]
    )

    async with client:
        entries = await get_all_time_entries(client, page_size=2)

    assert [e.id for e in entries] == [1, 2, 3]


@pytest.mark.asyncio
@respx.mock
async def test_entity_link_counts_as_work_package(client):
    body = _entry(8)
    del body["_links"]["workPackage"]
    body["_links"]["entity"] = {"href": "/api/v3/work_packages/77"}
    respx.get(f"{TE_URL}/8").mock(return_value=Response(200, json=body))

    async with client:
        entry = await get_time_entry(client, 8)

    assert entry.work_package_id == 77


def test_create_spec_normalises_hours():
    assert TimeEntryCreateSpec(work_package_id=1, hours="2h 30m").hours == "PT2H30M"
    assert TimeEntryCreateSpec(work_package_id=1, hours="pt45m").hours == "PT45M"
    with pytest.raises(ValidationError):
        TimeEntryCreateSpec(work_package_id=1, hours="soon")
    with pytest.raises(ValidationError):
        TimeEntryCreateSpec(work_package_id=1, hours="plenty")


def test_build_payload_links():
    spec = TimeEntryCreateSpec(
        work_package_id=42,
        hours="1.5h",
        activity_id=3,
        project_id=5,
        spent_on=date(2026, 2, 3),
        comment="Review",
    )

    assert build_time_entry_payload(spec) == {
        "hours": "PT1H30M",
        "spentOn": "2026-02-03",
        "comment": {"format": "markdown", "raw": "Review"},
        "_links": {
            "workPackage": {"href": "/api/v3/work_packages/42"},
            "project": {"href": "/api/v3/projects/5"},
            "activity": {"href": "/api/v3/time_entries/activities/3"},
        },
    }


@pytest.mark.asyncio
@respx.mock
async def test_create_validates_then_posts(client):
    form = respx.post(f"{TE_URL}/form").mock(return_value=Response(200, json=EMPTY_FORM))
    create = respx.post(TE_URL).mock(return_value=Response(201, json=_entry(11, hours="PT2H")))

    async with client:
        entry = await create_time_entry(
            client, TimeEntryCreateSpec(work_package_id=42, hours="2h", spent_on="2026-02-03")
        )

    assert entry.id == 11
    assert entry.minutes == 120
    sent = json.loads(create.calls[0].request.content)
    assert sent == json.loads(form.calls[0].request.content)
    assert sent["spentOn"] == "2026-02-03"


@pytest.mark.asyncio
@respx.mock
async def test_create_stops_on_form_errors(client):
    respx.post(f"{TE_URL}/form").mock(
        return_value=Response(
            200,
            json={
                "_type": "Form",
                "_embedded": {
                    "validationErrors": {
                        "activity": {"_type": "Error", "message": "Activity can't be blank."}
                    }
                },
            },
        )
    )
    create = respx.post(TE_URL).mock(return_value=Response(201, json=_entry(1)))

    async with client:
        with pytest.raises(TimeEntryValidationError) as exc:
            await create_time_entry(client, TimeEntryCreateSpec(work_package_id=42, hours="1h"))

    assert exc.value.messages == {"activity": "Activity can't be blank."}
    assert not create.called


def test_duration_error_is_value_error():
    assert issubclass(DurationParseError, ValueError)
