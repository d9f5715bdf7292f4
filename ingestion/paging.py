"""
Ingestion - Paged fetches through a scheduler.

Every page is its own scheduled task so each HTTP call is budgeted
and retried independently.
"""

import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from chain_sources.models import Page
from scheduling import RateLimitedScheduler, TaskFailure


logger = logging.getLogger(__name__)

PageFetcher = Callable[[Optional[str]], Awaitable[Page]]


@dataclass
class PagedResult:
    """
    Items gathered so far, and the failure that stopped paging, if any.

    ``exhausted`` means the last page read carried no next-page token.
    """
    items: List[Any] = field(default_factory=list)
    pages: int = 0
    failure: Optional[TaskFailure] = None
    exhausted: bool = False

    @property
    def ok(self) -> bool:
        return self.failure is None


async def collect_pages(
    scheduler: RateLimitedScheduler,
    fetch_page: PageFetcher,
    label: str,
    max_pages: Optional[int] = None,
) -> PagedResult:
    """
    Follow ``nextPageToken`` until exhausted, a page fails, or
    ``max_pages`` pages have been read.
    """
    result = PagedResult()
    token: Optional[str] = None

    while True:
        task = await scheduler.enqueue(
            functools.partial(fetch_page, token),
            label=f"{label} page {result.pages + 1}",
        )
        if not task.ok:
            result.failure = task.failure
            logger.warning(f"{label}: stopped after {result.pages} pages ({task.failure.message})")
            return result

        page: Page = task.value
        result.pages += 1
        result.items.extend(page.items)
        token = page.next_page_token
        if not token:
            result.exhausted = True
            return result
        if max_pages is not None and result.pages >= max_pages:
            logger.debug(f"{label}: page limit {max_pages} reached")
            return result
