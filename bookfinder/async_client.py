"""Async HTTP client for the Open Library search API."""
import httpx
from typing import Optional, Union
import logging

from bookfinder.client import Query, build_search_params, cover_url, page_from_payload
from bookfinder.config import Config
from bookfinder.exceptions import HttpStatusError, ParseError, TransportError
from bookfinder.models import SearchPage

logger = logging.getLogger(__name__)


class AsyncOpenLibraryClient:
    """Async client for Open Library search."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        covers_url: Optional[str] = None,
        timeout: int = Config.DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize async client.

        Args:
            base_url: Service root
            covers_url: Cover image host
            timeout: Request timeout
            client: Optional pre-built httpx client (tests pass one with a MockTransport)
        """
        self.base_url = (base_url or Config.OPENLIBRARY_BASE_URL).rstrip("/")
        self.covers_url = covers_url or Config.OPENLIBRARY_COVERS_URL
        self.timeout = timeout

        # Create async HTTP client
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"}
        )

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/search.json"

    async def fetch_page(self, query: Query, page: int = 1) -> SearchPage:
        """
        Fetch one page of search results asynchronously.

        Args:
            query: Search query or snapshot
            page: 1-based page number

        Returns:
            SearchPage with normalized records and the has_more flag
        """
        params = build_search_params(query, page)
        logger.info(f"Async request: {self.search_url} {params}")

        try:
            response = await self.client.get(self.search_url, params=params)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout: {self.search_url}")
            raise TransportError(f"request timed out after {self.timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(f"Async request failed: {e}")
            raise TransportError(f"network error: {e}") from e

        if not response.is_success:
            logger.warning(f"Status {response.status_code} for page {page}")
            raise HttpStatusError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Malformed JSON from {self.search_url}: {e}")
            raise ParseError(f"malformed response: {e}") from e

        result = page_from_payload(payload)
        logger.info(f"Page {page}: {len(result.records)} records (has_more={result.has_more})")
        return result

    def cover_url(self, cover_id: Optional[Union[int, str]], size: str = "M") -> Optional[str]:
        return cover_url(cover_id, size=size, base_url=self.covers_url)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
