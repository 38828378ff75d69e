"""Tests for the sync and async search controllers."""
from __future__ import annotations

import asyncio

import pytest

from bookfinder.client import cover_url, page_from_payload
from bookfinder.controller import (
    QUICK_SEARCHES,
    AsyncSearchController,
    FinderSession,
    SearchController,
)
from bookfinder.exceptions import HttpStatusError, TransportError
from bookfinder.models import SearchField, SearchPage, SearchQuery
from bookfinder.parse import parse_book
from bookfinder.session import SessionStatus


def page_of(count, start=0):
    records = [parse_book({"key": f"/works/OL{i}W", "title": f"Book {i}"}) for i in range(start, start + count)]
    return SearchPage(records=records, has_more=count == 12)


class FakeClient:
    """Serves scripted pages (or errors) in call order and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def fetch_page(self, query, page=1):
        self.calls.append((query, page))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def cover_url(self, cover_id, size="M"):
        return cover_url(cover_id, size=size, base_url="https://covers.test")


class GatedAsyncClient:
    """Async fake whose responses are released by the test via futures."""

    def __init__(self):
        self.calls = []
        self.pending: list[asyncio.Future] = []

    async def fetch_page(self, query, page=1):
        self.calls.append((query, page))
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        result = await future
        if isinstance(result, Exception):
            raise result
        return result

    def cover_url(self, cover_id, size="M"):
        return None


def test_blank_search_is_noop():
    client = FakeClient()
    controller = SearchController(client)

    controller.search(SearchQuery("   "))

    assert client.calls == []
    assert controller.status == SessionStatus.IDLE
    assert controller.results == []


def test_blank_search_keeps_previous_results():
    client = FakeClient(page_of(12))
    controller = SearchController(client)
    controller.search(SearchQuery("1984"))

    controller.search(SearchQuery(""))

    assert len(controller.results) == 12
    assert len(client.calls) == 1


def test_search_1984_single_full_page_then_exhausted():
    """Scenario: 12 docs for "1984", then the next page is empty."""
    client = FakeClient(page_of(12), page_of(0))
    controller = SearchController(client)

    controller.search(SearchQuery("1984", SearchField.TITLE))

    assert len(controller.results) == 12
    assert controller.page == 1
    assert controller.has_more is True

    controller.load_more()

    assert len(controller.results) == 12
    assert controller.has_more is False
    assert controller.status == SessionStatus.IDLE


def test_search_short_page_has_no_more():
    client = FakeClient(SearchPage(records=page_of(12).records, has_more=False))
    controller = SearchController(client)

    controller.search(SearchQuery("1984"))

    assert len(controller.results) == 12
    assert controller.has_more is False

    controller.load_more()
    assert len(client.calls) == 1


def test_load_more_monotonic():
    """After N load_more calls results are the pages concatenated and page == N + 1."""
    pages = [page_of(12, 0), page_of(12, 12), page_of(12, 24), page_of(5, 36)]
    client = FakeClient(*pages)
    controller = SearchController(client)

    controller.search(SearchQuery("history", SearchField.SUBJECT))
    for _ in range(3):
        controller.load_more()

    assert controller.page == 4
    assert len(controller.results) == 12 + 12 + 12 + 5
    assert [b.identity for b in controller.results] == [f"/works/OL{i}W" for i in range(41)]
    assert [page for _, page in client.calls] == [1, 2, 3, 4]


def test_load_more_uses_query_snapshot_from_search():
    client = FakeClient(page_of(12), page_of(1, 12))
    controller = SearchController(client)
    controller.search(SearchQuery("dune"))

    controller.query.text = "edited but not searched"
    controller.load_more()

    assert client.calls[1][0].text == "dune"


def test_failed_search_clears_results():
    client = FakeClient(page_of(12), HttpStatusError("HTTP error! status: 500", status_code=500))
    controller = SearchController(client)
    controller.search(SearchQuery("1984"))

    controller.search(SearchQuery("dune"))

    assert controller.status == SessionStatus.ERROR
    assert controller.results == []
    assert "500" in controller.error_message
    assert controller.error_message.startswith("Failed to fetch books:")


def test_failed_load_more_keeps_results_and_can_retry():
    client = FakeClient(page_of(12), TransportError("network error: reset"), page_of(3, 12))
    controller = SearchController(client)
    controller.search(SearchQuery("1984"))

    controller.load_more()

    assert controller.status == SessionStatus.ERROR
    assert len(controller.results) == 12

    controller.load_more()

    assert controller.status == SessionStatus.IDLE
    assert controller.error_message is None
    assert len(controller.results) == 15
    assert controller.page == 2


def test_session_usable_after_error():
    client = FakeClient(TransportError("network error: down"), page_of(2))
    controller = SearchController(client)

    controller.search(SearchQuery("1984"))
    assert controller.status == SessionStatus.ERROR

    controller.search()
    assert controller.status == SessionStatus.IDLE
    assert len(controller.results) == 2


def test_change_field_clears_results():
    client = FakeClient(page_of(12))
    controller = SearchController(client, SearchQuery("king"))
    controller.search()

    assert controller.change_field("author") is True

    assert controller.query.field == SearchField.AUTHOR
    assert controller.results == []
    assert controller.page == 1
    assert controller.has_more is False

    controller.load_more()
    assert len(client.calls) == 1


def test_change_field_same_value_keeps_results():
    client = FakeClient(page_of(12))
    controller = SearchController(client, SearchQuery("king"))
    controller.search()

    assert controller.change_field(SearchField.TITLE) is False
    assert len(controller.results) == 12


def test_change_field_rejects_unknown():
    controller = SearchController(FakeClient())
    with pytest.raises(ValueError):
        controller.change_field("isbn")


@pytest.mark.asyncio
async def test_concurrent_load_more_only_one_wins():
    """A second load_more while one is in flight leaves results untouched."""
    client = GatedAsyncClient()
    controller = AsyncSearchController(client)

    search = asyncio.create_task(controller.search(SearchQuery("1984")))
    await asyncio.sleep(0)
    client.pending[0].set_result(page_of(12))
    await search

    first = asyncio.create_task(controller.load_more())
    await asyncio.sleep(0)
    assert controller.status == SessionStatus.LOADING

    await controller.load_more()
    assert len(client.calls) == 2
    assert len(controller.results) == 12

    client.pending[1].set_result(page_of(12, 12))
    await first

    assert len(controller.results) == 24
    assert controller.page == 2


@pytest.mark.asyncio
async def test_gathered_load_more_issues_one_request():
    client = GatedAsyncClient()
    controller = AsyncSearchController(client)
    search = asyncio.create_task(controller.search(SearchQuery("1984")))
    await asyncio.sleep(0)
    client.pending[0].set_result(page_of(12))
    await search

    both = asyncio.gather(controller.load_more(), controller.load_more())
    await asyncio.sleep(0)
    assert len(client.pending) == 2
    client.pending[1].set_result(page_of(12, 12))
    await both

    assert len(controller.results) == 24
    assert [b.identity for b in controller.results] == [f"/works/OL{i}W" for i in range(24)]


@pytest.mark.asyncio
async def test_search_during_load_more_discards_stale_page():
    """A new search supersedes an in-flight load_more; its late response is dropped."""
    client = GatedAsyncClient()
    controller = AsyncSearchController(client)
    search = asyncio.create_task(controller.search(SearchQuery("1984")))
    await asyncio.sleep(0)
    client.pending[0].set_result(page_of(12))
    await search

    stale = asyncio.create_task(controller.load_more())
    await asyncio.sleep(0)
    fresh = asyncio.create_task(controller.search(SearchQuery("dune")))
    await asyncio.sleep(0)

    assert controller.results == []
    assert controller.status == SessionStatus.LOADING

    client.pending[1].set_result(page_of(12, 100))
    await stale
    assert controller.results == []
    assert controller.status == SessionStatus.LOADING

    client.pending[2].set_result(page_of(3, 500))
    await fresh

    assert [b.identity for b in controller.results] == ["/works/OL500W", "/works/OL501W", "/works/OL502W"]
    assert controller.page == 1
    assert controller.status == SessionStatus.IDLE


@pytest.mark.asyncio
async def test_change_field_during_fetch_discards_response():
    client = GatedAsyncClient()
    controller = AsyncSearchController(client, SearchQuery("king"))

    search = asyncio.create_task(controller.search())
    await asyncio.sleep(0)
    controller.change_field(SearchField.AUTHOR)

    assert controller.status == SessionStatus.IDLE
    assert controller.results == []

    client.pending[0].set_result(page_of(12))
    await search

    assert controller.results == []
    assert controller.has_more is False


@pytest.mark.asyncio
async def test_stale_failure_does_not_set_error():
    client = GatedAsyncClient()
    controller = AsyncSearchController(client, SearchQuery("king"))

    search = asyncio.create_task(controller.search())
    await asyncio.sleep(0)
    controller.change_field("subject")

    client.pending[0].set_result(TransportError("network error: late"))
    await search

    assert controller.status == SessionStatus.IDLE
    assert controller.error_message is None


def test_finder_session_cards_cross_reference_shelves():
    client = FakeClient(SearchPage(
        records=[
            parse_book({"key": "/works/OL1W", "title": "Dune", "cover_i": 7}),
            parse_book({"key": "/works/OL2W", "title": "Emma"}),
        ],
        has_more=False,
    ))
    session = FinderSession(SearchController(client))
    session.controller.search(SearchQuery("d"))
    dune, emma = session.controller.results

    session.bookmarks.toggle(dune)
    session.reading_list.add(emma)
    cards = session.cards()

    assert cards[0].bookmarked and not cards[0].in_reading_list
    assert cards[0].cover_url == "https://covers.test/b/id/7-M.jpg"
    assert cards[1].in_reading_list and not cards[1].bookmarked
    assert cards[1].cover_url is None


def test_bookmarks_survive_new_search():
    client = FakeClient(page_of(2), page_of(2, 50))
    session = FinderSession(SearchController(client))
    session.controller.search(SearchQuery("first"))
    session.bookmarks.toggle(session.controller.results[0])

    session.controller.search(SearchQuery("second"))

    assert "/works/OL0W" in session.bookmarks
    assert not any(card.bookmarked for card in session.cards())


def test_quick_search_sets_field_and_text():
    client = FakeClient(page_of(12))
    session = FinderSession(SearchController(client))
    suggestion = next(s for s in QUICK_SEARCHES if s.label == "Stephen King")

    session.quick_search(suggestion)

    query, page = client.calls[0]
    assert query.field == SearchField.AUTHOR
    assert query.text == "Stephen King"
    assert page == 1
    assert session.query.field == SearchField.AUTHOR


@pytest.mark.asyncio
async def test_quick_search_with_async_controller():
    client = GatedAsyncClient()
    session = FinderSession(AsyncSearchController(client))

    task = asyncio.create_task(session.quick_search(QUICK_SEARCHES[0]))
    await asyncio.sleep(0)
    client.pending[0].set_result(page_of(4))
    await task

    assert client.calls[0][0].field == SearchField.SUBJECT
    assert len(session.controller.results) == 4


def test_search_results_never_exceed_page_size():
    """An upstream reply with 20 docs still yields one page of 12."""
    docs = [{"key": f"/works/OL{i}W", "title": f"Book {i}"} for i in range(20)]
    client = FakeClient(page_from_payload({"docs": docs}))
    controller = SearchController(client)

    controller.search(SearchQuery("1984"))

    assert len(controller.results) == 12
    assert controller.page == 1
    assert controller.has_more is True


def test_search_with_none_text_is_noop():
    client = FakeClient()
    controller = SearchController(client)

    controller.search(SearchQuery(text=None))

    assert client.calls == []
    assert controller.status == SessionStatus.IDLE


def test_unexpected_client_error_does_not_leave_session_loading():
    """A non-FetchError propagates but the session ends in error and stays usable."""
    client = FakeClient(page_of(12), RuntimeError("bad base url"), page_of(3, 12))
    controller = SearchController(client)
    controller.search(SearchQuery("1984"))

    with pytest.raises(RuntimeError):
        controller.load_more()

    assert controller.status == SessionStatus.ERROR
    assert "bad base url" in controller.error_message
    assert len(controller.results) == 12

    controller.load_more()

    assert controller.status == SessionStatus.IDLE
    assert len(controller.results) == 15


@pytest.mark.asyncio
async def test_async_unexpected_client_error_sets_error_status():
    client = GatedAsyncClient()
    controller = AsyncSearchController(client)

    task = asyncio.create_task(controller.search(SearchQuery("1984")))
    await asyncio.sleep(0)
    client.pending[0].set_exception(RuntimeError("bad"))

    with pytest.raises(RuntimeError):
        await task

    assert controller.status == SessionStatus.ERROR
    assert controller.results == []


def test_quick_search_goes_through_change_field():
    client = FakeClient(page_of(12), page_of(2, 50))
    session = FinderSession(SearchController(client))
    session.controller.search(SearchQuery("dune"))
    seen = []
    original = session.controller.change_field

    def spy(field):
        seen.append(field)
        return original(field)

    session.controller.change_field = spy
    suggestion = next(s for s in QUICK_SEARCHES if s.field == SearchField.SUBJECT)

    session.quick_search(suggestion)

    assert seen == [SearchField.SUBJECT]
    assert session.query.field == SearchField.SUBJECT
    assert [b.identity for b in session.controller.results] == ["/works/OL50W", "/works/OL51W"]
