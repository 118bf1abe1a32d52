"""
Paginated Fetch

One paginator for every remote listing. A stage supplies how to fetch a
page given a continuation token and a ceiling policy; the paginator owns
the loop, the ceilings and the partial-result bookkeeping.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

import structlog

from skupulse.exceptions import FetchFailure

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_LINK_URL = re.compile(r"<([^>]+)>")


@dataclass
class Page(Generic[T]):
    """One page of results plus the token for the next page (None when done)"""
    items: List[T]
    next: Optional[Any] = None


@dataclass
class PageLimits:
    """
    Safety ceilings for one paginated stage.

    max_pages counts follow-up pages after the first one. max_items stops
    the walk once the accumulated item count passes the cap; the page that
    crossed it is kept.
    """
    max_pages: Optional[int] = None
    max_items: Optional[int] = None


@dataclass
class PaginationResult(Generic[T]):
    """Everything collected by a walk and why it stopped"""
    items: List[T] = field(default_factory=list)
    pages: int = 0
    truncated: bool = False


PageFetcher = Callable[[Optional[Any]], Awaitable[Page[T]]]


class Paginator(Generic[T]):
    """
    Walk a paginated listing until it ends or a ceiling trips.

    Example:
        paginator = Paginator("orders", fetch_page, PageLimits(max_pages=40, max_items=20000))
        result = await paginator.collect()
    """

    def __init__(self, stage: str, fetch_page: PageFetcher, limits: Optional[PageLimits] = None):
        self.stage = stage
        self.fetch_page = fetch_page
        self.limits = limits or PageLimits()

    def _ceiling_reached(self, result: PaginationResult) -> bool:
        follow_ups = result.pages - 1
        if self.limits.max_pages is not None and follow_ups >= self.limits.max_pages:
            return True
        if self.limits.max_items is not None and len(result.items) > self.limits.max_items:
            return True
        return False

    async def collect(self) -> PaginationResult[T]:
        """
        Fetch pages sequentially.

        Returns:
            PaginationResult with every item collected

        Raises:
            FetchFailure: A page failed; carries the items fetched before it
        """
        result: PaginationResult[T] = PaginationResult()
        token: Optional[Any] = None

        while True:
            try:
                page = await self.fetch_page(token)
            except Exception as e:
                raise FetchFailure(self.stage, result.items, e) from e

            result.pages += 1
            result.items.extend(page.items)
            token = page.next

            if token is None:
                break

            if self._ceiling_reached(result):
                result.truncated = True
                logger.warning(
                    "Pagination safety ceiling reached",
                    stage=self.stage,
                    pages=result.pages,
                    items=len(result.items),
                    max_pages=self.limits.max_pages,
                    max_items=self.limits.max_items,
                )
                break

        logger.info("Pagination finished", stage=self.stage, pages=result.pages, items=len(result.items))
        return result


def parse_link_header(value: Optional[str]) -> Optional[str]:
    """
    Extract the rel="next" URL from an RFC 8288 Link header.

    >>> parse_link_header('<https://x/a?page_info=p>; rel="previous", <https://x/b?page_info=n>; rel="next"')
    'https://x/b?page_info=n'
    """
    if not value:
        return None
    for part in value.split(","):
        sections = [s.strip() for s in part.split(";")]
        if len(sections) < 2:
            continue
        rels = [s for s in sections[1:] if s.lower().startswith("rel=")]
        if any("next" in r.split("=", 1)[1].strip('"').lower().split() for r in rels):
            match = _LINK_URL.search(sections[0])
            if match:
                return match.group(1).strip()
    return None


def graphql_cursor(connection: dict) -> Optional[str]:
    """Next cursor of a GraphQL connection, or None on the last page"""
    page_info = connection.get("pageInfo") or {}
    edges = connection.get("edges") or []
    if not page_info.get("hasNextPage") or not edges:
        return None
    return edges[-1].get("cursor")
