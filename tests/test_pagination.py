from collections import deque

import pytest

from recexplorer.exceptions import TransportError
from recexplorer.pagination import fetch_all_pages, next_page_token


class PageStub:
    def __init__(self, pages):
        self.pages = deque(pages)
        self.tokens = []

    def __call__(self, token):
        self.tokens.append(token)
        page = self.pages.popleft()
        if isinstance(page, Exception):
            raise page
        return page


def test_follows_tokens_until_exhausted():
    stub = PageStub(
        [
            {"recordings": [{"id": "a"}], "next_page_token": "t1"},
            {"recordings": [{"id": "b"}], "next_page_token": "t2"},
            {"recordings": [{"id": "c"}], "next_page_token": ""},
        ]
    )

    result = fetch_all_pages(stub, max_pages=20)

    assert stub.tokens == [None, "t1", "t2"]
    assert [r["id"] for r in result.items("recordings")] == ["a", "b", "c"]
    assert result.terminated_early is False


def test_cap_reached_with_token_marks_terminated_early(caplog):
    stub = PageStub(
        [{"recordings": [{"id": i}], "next_page_token": f"t{i}"} for i in range(25)]
    )

    result = fetch_all_pages(stub, max_pages=20, label="phone recordings")

    assert len(result.pages) == 20
    assert len(stub.tokens) == 20
    assert result.terminated_early is True
    assert "may be incomplete" in caplog.text


def test_cap_exactly_reached_without_token_is_complete():
    stub = PageStub([{"next_page_token": "t"}, {"next_page_token": None}])

    result = fetch_all_pages(stub, max_pages=2)

    assert len(result.pages) == 2
    assert result.terminated_early is False


def test_error_on_any_page_aborts_loop():
    stub = PageStub([{"next_page_token": "t1"}, TransportError("down", status_code=502)])

    with pytest.raises(TransportError):
        fetch_all_pages(stub, max_pages=5)


def test_rejects_non_positive_cap():
    with pytest.raises(ValueError):
        fetch_all_pages(lambda token: {}, max_pages=0)


def test_custom_cursor_extractor():
    stub = PageStub([{"cursor": "x"}, {"cursor": None}])

    result = fetch_all_pages(stub, next_from=lambda page: page.get("cursor"))

    assert stub.tokens == [None, "x"]
    assert len(result.pages) == 2


def test_items_skips_non_list_values():
    stub = PageStub([{"users": "oops", "next_page_token": "t"}, {"users": [{"id": 1}]}])
    result = fetch_all_pages(stub)
    assert list(result.items("users")) == [{"id": 1}]


def test_next_page_token_treats_empty_as_none():
    assert next_page_token({}) is None
    assert next_page_token({"next_page_token": ""}) is None
    assert next_page_token({"next_page_token": "abc"}) == "abc"
