"""HTTP client for the Open Library search API."""
import requests
from typing import Optional, Dict, Any, Union
import logging

from bookfinder.config import Config, PAGE_SIZE
from bookfinder.exceptions import HttpStatusError, ParseError, TransportError
from bookfinder.models import QuerySnapshot, SearchPage, SearchQuery
from bookfinder.parse import parse_search_response

logger = logging.getLogger(__name__)

Query = Union[SearchQuery, QuerySnapshot]


def as_snapshot(query: Query) -> QuerySnapshot:
    """Accept either the mutable query model or an already frozen snapshot."""
    if isinstance(query, SearchQuery):
        return query.snapshot()
    return query


def build_search_params(query: Query, page: int) -> Dict[str, Any]:
    """
    Build query parameters for one page of a search.

    Args:
        query: What to search for
        page: 1-based page number

    Returns:
        Parameters for ``GET /search.json``

    Raises:
        ValueError: if the page is below 1 or the query text is blank
    """
    snapshot = as_snapshot(query)
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if snapshot.is_blank:
        raise ValueError("query text must not be empty")

    # Exactly one of title/author/subject; each selects a different index
    params = {
        snapshot.field.value: snapshot.text,
        "page": page,
        "limit": PAGE_SIZE,
    }

    if snapshot.year_from is not None:
        params["first_publish_year[from]"] = snapshot.year_from
    if snapshot.year_to is not None:
        params["first_publish_year[to]"] = snapshot.year_to
    if snapshot.language:
        params["language"] = snapshot.language

    return params


def page_from_payload(payload: Any) -> SearchPage:
    """
    Turn a decoded response body into a SearchPage.

    The service reports no total, so a full page is taken to mean more may
    exist. When the total is an exact multiple of PAGE_SIZE this claims one
    page too many; the following fetch comes back empty and clears the flag.
    A reply that ignores the limit is cut back to PAGE_SIZE records.
    """
    books, raw_count = parse_search_response(payload)
    if len(books) > PAGE_SIZE:
        logger.warning(f"Upstream returned {raw_count} docs for a page of {PAGE_SIZE}; truncating")
    return SearchPage(records=books[:PAGE_SIZE], has_more=raw_count >= PAGE_SIZE)


def cover_url(
    cover_id: Optional[Union[int, str]],
    size: str = "M",
    base_url: Optional[str] = None
) -> Optional[str]:
    """
    Build a cover image URL.

    Returns:
        Image URL, or None when there is no cover and a placeholder should be shown
    """
    if cover_id in (None, "", 0):
        return None
    base = (base_url or Config.OPENLIBRARY_COVERS_URL).rstrip("/")
    return f"{base}/b/id/{cover_id}-{size}.jpg"


class OpenLibraryClient:
    """Client for Open Library search. Failures raise FetchError subclasses; no retries."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        covers_url: Optional[str] = None,
        timeout: int = Config.DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize Open Library client.

        Args:
            base_url: Service root (defaults to Config.OPENLIBRARY_BASE_URL)
            covers_url: Cover image host (defaults to Config.OPENLIBRARY_COVERS_URL)
            timeout: Request timeout in seconds
            session: Optional pre-built requests session
        """
        self.base_url = (base_url or Config.OPENLIBRARY_BASE_URL).rstrip("/")
        self.covers_url = covers_url or Config.OPENLIBRARY_COVERS_URL
        self.timeout = timeout

        # Create session for connection pooling
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/search.json"

    def fetch_page(self, query: Query, page: int = 1) -> SearchPage:
        """
        Fetch one page of search results.

        Args:
            query: Search query or snapshot
            page: 1-based page number

        Returns:
            SearchPage with normalized records and the has_more flag

        Raises:
            TransportError: network failure
            HttpStatusError: non-2xx response
            ParseError: body is not JSON or has an unexpected shape
        """
        params = build_search_params(query, page)
        payload = self._get_json(self.search_url, params)
        result = page_from_payload(payload)
        logger.info(f"Page {page}: {len(result.records)} records (has_more={result.has_more})")
        return result

    def cover_url(self, cover_id: Optional[Union[int, str]], size: str = "M") -> Optional[str]:
        return cover_url(cover_id, size=size, base_url=self.covers_url)

    def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        logger.info(f"Request: {url} {params}")

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(f"Timeout: {url}")
            raise TransportError(f"request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Connection error: {e}")
            raise TransportError(f"network error: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"HTTP error ({response.status_code}) for {url}")
            raise HttpStatusError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON from {url}: {e}")
            raise ParseError(f"malformed response: {e}") from e

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
