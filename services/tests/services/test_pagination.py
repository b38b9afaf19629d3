"""Tests for cursor-following pagination."""

import pytest

from tfectl.api.errors import RemoteOperationError
from tfectl.api.models import Page
from tfectl.services.pagination import paginate


def _pages(*pages: list[str]):
    """fetch_page over fixed pages, recording which page numbers were requested."""
    requested: list[int] = []

    def fetch_page(number: int) -> Page[str]:
        requested.append(number)
        next_page = number + 1 if number < len(pages) else 0
        return Page(items=list(pages[number - 1]), next_page=next_page)

    return fetch_page, requested


class TestPaginate:
    def test_yields_all_pages_in_order(self):
        fetch_page, requested = _pages(["a", "b"], ["c", "d"], ["e"])

        assert list(paginate(fetch_page)) == ["a", "b", "c", "d", "e"]
        assert requested == [1, 2, 3]

    def test_single_page(self):
        fetch_page, requested = _pages(["only"])

        assert list(paginate(fetch_page)) == ["only"]
        assert requested == [1]

    def test_empty_first_page_is_empty_result(self):
        fetch_page, requested = _pages([])

        assert list(paginate(fetch_page)) == []
        assert requested == [1]

    def test_follows_reported_next_page(self):
        requested = []

        def fetch_page(number: int) -> Page[int]:
            requested.append(number)
            # Server skips straight from page 1 to page 5
            return Page(items=[number], next_page={1: 5, 5: 0}[number])

        assert list(paginate(fetch_page)) == [1, 5]
        assert requested == [1, 5]

    def test_is_lazy(self):
        fetch_page, requested = _pages(["a", "b"], ["c"])
        items = paginate(fetch_page)

        assert requested == []
        assert next(items) == "a"
        assert next(items) == "b"
        assert requested == [1]
        assert next(items) == "c"
        assert requested == [1, 2]

    def test_error_aborts_iteration(self):
        requested = []

        def fetch_page(number: int) -> Page[str]:
            requested.append(number)
            if number == 2:
                raise RemoteOperationError("GET /things returned 500", status_code=500)
            return Page(items=["a"], next_page=number + 1)

        items = paginate(fetch_page)
        assert next(items) == "a"
        with pytest.raises(RemoteOperationError):
            next(items)
        assert requested == [1, 2]

    def test_stops_early_without_fetching_more(self):
        fetch_page, requested = _pages(["a", "target"], ["c"])

        for item in paginate(fetch_page):
            if item == "target":
                break

        assert requested == [1]
