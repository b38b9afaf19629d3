"""Cursor-following iteration over paginated list endpoints."""

from collections.abc import Callable, Iterator
from typing import TypeVar

from tfectl.api.models import Page
from tfectl.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

FIRST_PAGE = 1


def paginate(fetch_page: Callable[[int], Page[T]]) -> Iterator[T]:
    """Yield every item of every page, in order.

    Starts at page 1 and follows each page's next_page until it is 0. Pages
    are fetched lazily: page n+1 is requested only once page n's items have
    all been consumed. Errors from fetch_page propagate immediately and end
    the iteration.
    """
    page_number = FIRST_PAGE
    while page_number:
        page = fetch_page(page_number)
        logger.debug(
            "Fetched page",
            page=page_number,
            items=len(page.items),
            next_page=page.next_page,
        )
        yield from page.items
        page_number = page.next_page
