from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from .core.observability import log_event
from .models import HalCollection

T = TypeVar("T")

FetchPage = Callable[[int, int], Awaitable[HalCollection[T]]]

log = logging.getLogger("openproject_hal.pagination")

DEFAULT_PAGE_SIZE = 100


class PaginationConfigError(ValueError):
    """Raised before any request when page size / start page are invalid."""


class PaginationCancelledError(Exception):
    """
    Raised when the cancel event is set between two page fetches.
    ``elements`` holds what had been gathered so far; it is not a result.
    """

    def __init__(self, message: str, *, page: int, elements: List):
        super().__init__(message)
        self.page = page
        self.elements = elements


async def fetch_all(
    fetch_page: FetchPage[T],
    *,
    page_size: int = DEFAULT_PAGE_SIZE,
    start_page: int = 1,
    max_pages: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> List[T]:
    """
    Fetches every element of a paginated HAL collection, one page at a time.

    OpenProject's ``offset`` is a 1-based page number, so ``fetch_page`` gets
    ``(page, page_size)``. The loop stops after a page when:
      1. the reported total is known (> 0) and has been reached, counting
         the pages before start_page as already seen,
      2. the page reported a non-zero count smaller than page_size,
      3. an empty page arrived without a reported total,
      4. max_pages pages have been fetched.
    Page failures propagate unchanged; no partial list is returned.
    """
    if page_size <= 0:
        raise PaginationConfigError(f"page_size must be > 0, got {page_size}")
    if start_page <= 0:
        raise PaginationConfigError(f"start_page must be > 0, got {start_page}")
    if max_pages is not None and max_pages <= 0:
        raise PaginationConfigError(f"max_pages must be > 0, got {max_pages}")

    items: List[T] = []
    page = start_page
    # elements on the pages before start_page count towards the reported total
    skipped = (start_page - 1) * page_size

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise PaginationCancelledError(
                f"Pagination cancelled before page {page}",
                page=page,
                elements=items,
            )

        resp = await fetch_page(page, page_size)
        items.extend(resp.elements)
        log.debug(
            "page_fetched",
            extra={
                "page": page,
                "count": resp.count,
                "total": resp.total,
                "accumulated": len(items),
            },
        )

        if resp.total > 0 and skipped + len(items) >= resp.total:
            break
        if 0 < resp.count < page_size:
            break
        # nothing reported and nothing returned: the collection is exhausted
        if resp.total == 0 and not resp.elements:
            break
        if max_pages is not None and (page - start_page + 1) >= max_pages:
            break

        page += 1

    log_event(
        "pagination_complete",
        logger=log,
        pages=page - start_page + 1,
        elements=len(items),
    )
    return items


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "FetchPage",
    "PaginationCancelledError",
    "PaginationConfigError",
    "fetch_all",
]
