import asyncio
import logging

import pytest
from openproject_hal.models import HalCollection
from openproject_hal.pagination import (
    PaginationCancelledError,
    PaginationConfigError,
    fetch_all,
)


def _page(elements, *, total, page_size, offset):
    return HalCollection[int].model_validate(
        {
            "_type": "Collection",
            "total": total,
            "count": len(elements),
            "pageSize": page_size,
            "offset": offset,
            "_embedded": {"elements": elements},
        }
    )


class FakePageSource:
    def __init__(self, pages, *, total):
        self.pages = pages
        self.total = total
        self.calls = []

    async def __call__(self, page, page_size):
        self.calls.append((page, page_size))
        elements = self.pages[page - 1] if page <= len(self.pages) else []
        return _page(elements, total=self.total, page_size=page_size, offset=page)


def _chunks(sizes):
    start = 0
    out = []
    for size in sizes:
        out.append(list(range(start, start + size)))
        start += size
    return out


@pytest.mark.asyncio
async def test_stops_when_reported_total_reached():
    source = FakePageSource(_chunks([10, 10, 10, 3]), total=33)

    items = await fetch_all(source, page_size=10)

    assert items == list(range(33))
    assert [c[0] for c in source.calls] == [1, 2, 3, 4]
    assert all(c[1] == 10 for c in source.calls)


@pytest.mark.asyncio
async def test_short_page_stops_when_total_unknown():
    source = FakePageSource(_chunks([10, 10, 7]), total=0)

    items = await fetch_all(source, page_size=10)

    assert len(items) == 27
    assert items == list(range(27))
    assert len(source.calls) == 3


@pytest.mark.asyncio
async def test_full_final_page_with_total_stops_without_extra_request():
    source = FakePageSource(_chunks([5, 5]), total=10)

    items = await fetch_all(source, page_size=5)

    assert len(items) == 10
    assert len(source.calls) == 2


@pytest.mark.asyncio
async def test_zero_count_page_is_not_read_as_final():
    pages = [[1, 2], [], [3]]

    calls = []

    async def fetch_page(page, page_size):
        calls.append(page)
        return _page(pages[page - 1], total=3, page_size=page_size, offset=page)

    items = await fetch_all(fetch_page, page_size=2)

    assert items == [1, 2, 3]
    assert calls == [1, 2, 3]


@pytest.mark.asyncio
async def test_max_pages_caps_the_loop():
    source = FakePageSource(_chunks([10] * 10), total=0)

    items = await fetch_all(source, page_size=10, max_pages=3)

    assert len(items) == 30
    assert len(source.calls) == 3


@pytest.mark.asyncio
async def test_start_page_is_honoured():
    source = FakePageSource(_chunks([10, 10, 4]), total=0)

    items = await fetch_all(source, page_size=10, start_page=2, max_pages=5)

    assert [c[0] for c in source.calls] == [2, 3]
    assert items == list(range(10, 24))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"page_size": 0},
        {"page_size": -5},
        {"page_size": 10, "start_page": 0},
        {"page_size": 10, "max_pages": 0},
    ],
)
async def test_invalid_configuration_rejected_before_any_fetch(kwargs):
    source = FakePageSource(_chunks([10]), total=10)

    with pytest.raises(PaginationConfigError):
        await fetch_all(source, **kwargs)

    assert source.calls == []


@pytest.mark.asyncio
async def test_page_failure_propagates_without_partial_result():
    calls = []

    async def fetch_page(page, page_size):
        calls.append(page)
        if page == 2:
            raise RuntimeError("upstream exploded")
        return _page(list(range(10)), total=0, page_size=page_size, offset=page)

    with pytest.raises(RuntimeError, match="upstream exploded"):
        await fetch_all(fetch_page, page_size=10)

    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_cancel_event_checked_before_each_fetch():
    cancel = asyncio.Event()
    calls = []

    async def fetch_page(page, page_size):
        calls.append(page)
        if page == 2:
            cancel.set()
        return _page(list(range(page * 10, page * 10 + 10)), total=0, page_size=10, offset=page)

    with pytest.raises(PaginationCancelledError) as exc:
        await fetch_all(fetch_page, page_size=10, cancel_event=cancel)

    assert calls == [1, 2]
    assert exc.value.page == 3
    assert exc.value.elements == list(range(10, 30))


@pytest.mark.asyncio
async def test_already_cancelled_issues_no_request():
    cancel = asyncio.Event()
    cancel.set()
    source = FakePageSource(_chunks([10]), total=10)

    with pytest.raises(PaginationCancelledError):
        await fetch_all(source, page_size=10, cancel_event=cancel)

    assert source.calls == []


@pytest.mark.asyncio
async def test_completion_is_logged(caplog):
    caplog.set_level(logging.INFO, logger="openproject_hal.pagination")
    source = FakePageSource(_chunks([3]), total=3)

    await fetch_all(source, page_size=10)

    record = next(r for r in caplog.records if r.getMessage() == "pagination_complete")
    assert record.pages == 1
    assert record.elements == 3


@pytest.mark.asyncio
async def test_empty_collection_without_total_terminates():
    source = FakePageSource([], total=0)

    items = await fetch_all(source, page_size=10)

    assert items == []
    assert source.calls == [(1, 10)]


@pytest.mark.asyncio
async def test_start_page_counts_skipped_pages_towards_total():
    source = FakePageSource(_chunks([10, 10, 10]), total=30)

    items = await fetch_all(source, page_size=10, start_page=2)

    assert items == list(range(10, 30))
    assert [c[0] for c in source.calls] == [2, 3]


@pytest.mark.asyncio
async def test_start_page_beyond_total_stops_after_one_request():
    source = FakePageSource(_chunks([10, 10]), total=20)

    items = await fetch_all(source, page_size=10, start_page=4)

    assert items == []
    assert [c[0] for c in source.calls] == [4]
