"""
Cursor-driven pagination over a single upstream collection endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

Page = dict[str, Any]


def next_page_token(page: Page) -> str | None:
    """Default cursor extractor for Zoom list endpoints."""
    token = page.get("next_page_token")
    return str(token) if token else None


@dataclass
class PageFetchResult:
    """Pages retrieved by one cursor loop.

    ``terminated_early`` is True when the page cap was reached while the last
    page still carried a continuation token, i.e. results may be incomplete.
    """

    pages: list[Page] = field(default_factory=list)
    terminated_early: bool = False

    def items(self, key: str) -> Iterator[Any]:
        """Yield list entries stored under ``key`` across all pages, in page order."""
        for page in self.pages:
            entries = page.get(key)
            if isinstance(entries, list):
                yield from entries


def fetch_all_pages(
    fetch_page: Callable[[str | None], Page],
    next_from: Callable[[Page], str | None] = next_page_token,
    max_pages: int | None = None,
    *,
    label: str = "collection",
) -> PageFetchResult:
    """Follow continuation tokens until exhausted or ``max_pages`` is reached.

    ``fetch_page`` is called with ``None`` first, then with each token returned
    by ``next_from``. Any exception raised while fetching a page propagates and
    aborts the whole loop; a cursor loop never partially succeeds.
    """
    if max_pages is not None and max_pages <= 0:
        raise ValueError("max_pages must be positive")

    result = PageFetchResult()
    token: str | None = None
    while True:
        page = fetch_page(token)
        result.pages.append(page)
        token = next_from(page)
        if not token:
            break
        if max_pages is not None and len(result.pages) >= max_pages:
            result.terminated_early = True
            logger.warning(
                "Stopped paginating %s after %d pages with a continuation token "
                "still present; results may be incomplete",
                label,
                len(result.pages),
            )
            break

    logger.debug("Fetched %d page(s) of %s", len(result.pages), label)
    return result
