"""Search controllers that drive a session against an Open Library client."""
from dataclasses import dataclass
from typing import List, Optional, Union
import logging

from bookfinder.exceptions import FetchError
from bookfinder.models import Book, SearchField, SearchQuery
from bookfinder.session import (
    RequestTag,
    SessionState,
    SessionStatus,
    complete_fetch,
    fail_fetch,
    is_current,
    reset_pagination,
    start_load_more,
    start_search,
)
from bookfinder.shelves import Bookmarks, ReadingList

logger = logging.getLogger(__name__)


class _ControllerBase:
    """State bookkeeping shared by the sync and async controllers."""

    def __init__(self, client, query: Optional[SearchQuery] = None):
        self.client = client
        self.query = query or SearchQuery()
        self.state = SessionState()

    @property
    def results(self) -> List[Book]:
        return list(self.state.results)

    @property
    def page(self) -> int:
        return self.state.page

    @property
    def has_more(self) -> bool:
        return self.state.has_more

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def error_message(self) -> Optional[str]:
        return self.state.error_message

    def change_field(self, field: Union[str, SearchField]) -> bool:
        """
        Switch the search index and clear results right away.

        Returns:
            True if the field changed (and pagination was reset)
        """
        field = SearchField.parse(field)
        if field == self.query.field:
            return False
        self.query.field = field
        self.state = reset_pagination(self.state)
        logger.debug(f"Search field -> {field.value}; results cleared")
        return True

    def _begin_search(self, query: Optional[SearchQuery]) -> Optional[RequestTag]:
        if query is not None:
            self.query = query
        state, tag = start_search(self.state, self.query.snapshot())
        if tag is None:
            logger.debug("Ignoring search with empty query text")
            return None
        if self.state.is_loading:
            logger.debug(f"Search supersedes in-flight request for page {self.state.pending.page}")
        self.state = state
        logger.info(f"Searching {tag.query.field.value}={tag.query.text!r}")
        return tag

    def _begin_load_more(self) -> Optional[RequestTag]:
        state, tag = start_load_more(self.state)
        if tag is None:
            logger.debug(
                f"load_more ignored (status={self.state.status.value}, has_more={self.state.has_more})"
            )
            return None
        self.state = state
        logger.info(f"Loading page {tag.page}")
        return tag

    def _finish(self, tag: RequestTag, page=None, error: Optional[FetchError] = None):
        if not is_current(self.state, tag):
            logger.debug(f"Discarding stale response for page {tag.page} (generation {tag.generation})")
            return

        if error is not None:
            message = f"Failed to fetch books: {error.message}"
            logger.warning(message)
            self.state = fail_fetch(self.state, tag, message)
        else:
            self.state = complete_fetch(self.state, tag, page)
            logger.debug(f"{len(self.state.results)} results after page {self.state.page}")


class SearchController(_ControllerBase):
    """Blocking controller over OpenLibraryClient."""

    def search(self, query: Optional[SearchQuery] = None) -> SessionState:
        """
        Start a new search from page 1.

        Args:
            query: Replaces the controller's query model if given

        Returns:
            Session state after the fetch settled (unchanged for blank text)
        """
        tag = self._begin_search(query)
        if tag is not None:
            self._run(tag)
        return self.state

    def load_more(self) -> SessionState:
        """Append the next page; no-op while loading or when no more pages are expected."""
        tag = self._begin_load_more()
        if tag is not None:
            self._run(tag)
        return self.state

    def _run(self, tag: RequestTag):
        try:
            page = self.client.fetch_page(tag.query, tag.page)
        except FetchError as e:
            self._finish(tag, error=e)
        except Exception as e:
            self._finish(tag, error=FetchError(f"unexpected error: {e}"))
            raise
        else:
            self._finish(tag, page=page)


class AsyncSearchController(_ControllerBase):
    """
    Controller over AsyncOpenLibraryClient.

    Status flips to loading before the first await, so a second load_more
    scheduled while a fetch is pending sees it and returns immediately.
    """

    async def search(self, query: Optional[SearchQuery] = None) -> SessionState:
        tag = self._begin_search(query)
        if tag is not None:
            await self._run(tag)
        return self.state

    async def load_more(self) -> SessionState:
        tag = self._begin_load_more()
        if tag is not None:
            await self._run(tag)
        return self.state

    async def _run(self, tag: RequestTag):
        try:
            page = await self.client.fetch_page(tag.query, tag.page)
        except FetchError as e:
            self._finish(tag, error=e)
        except Exception as e:
            self._finish(tag, error=FetchError(f"unexpected error: {e}"))
            raise
        else:
            self._finish(tag, page=page)


@dataclass(frozen=True)
class QuickSearch:
    field: SearchField
    text: str
    label: str


QUICK_SEARCHES = [
    QuickSearch(SearchField.SUBJECT, "computer science", "Computer Science"),
    QuickSearch(SearchField.SUBJECT, "mathematics", "Mathematics"),
    QuickSearch(SearchField.SUBJECT, "psychology", "Psychology"),
    QuickSearch(SearchField.SUBJECT, "literature", "Literature"),
    QuickSearch(SearchField.SUBJECT, "history", "History"),
    QuickSearch(SearchField.AUTHOR, "Stephen King", "Stephen King"),
    QuickSearch(SearchField.TITLE, "1984", "1984 by Orwell"),
    QuickSearch(SearchField.TITLE, "Harry Potter", "Harry Potter Series"),
]


@dataclass(frozen=True)
class BookCard:
    """What a renderer needs to draw one result."""
    book: Book
    cover_url: Optional[str]
    bookmarked: bool
    in_reading_list: bool


class FinderSession:
    """
    Top-level session: one controller plus the user's bookmarks and reading list.

    The controller never sees the shelves; membership is looked up here when
    cards are built.
    """

    def __init__(self, controller: Union[SearchController, AsyncSearchController]):
        self.controller = controller
        self.bookmarks = Bookmarks()
        self.reading_list = ReadingList()

    @property
    def query(self) -> SearchQuery:
        return self.controller.query

    def quick_search(self, suggestion: QuickSearch):
        """
        Set field and text from a suggestion and start a new search.

        Returns whatever the controller's search returns (a coroutine for
        the async controller).
        """
        self.controller.change_field(suggestion.field)
        self.query.text = suggestion.text
        return self.controller.search()

    def card(self, book: Book) -> BookCard:
        return BookCard(
            book=book,
            cover_url=self.controller.client.cover_url(book.cover_id),
            bookmarked=book.identity in self.bookmarks,
            in_reading_list=book.identity in self.reading_list,
        )

    def cards(self) -> List[BookCard]:
        return [self.card(book) for book in self.controller.results]
