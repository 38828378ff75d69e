"""Parse and normalize Open Library search responses."""
from typing import Dict, Any, List, Optional, Tuple
import logging

from bookfinder.exceptions import ParseError
from bookfinder.models import Book, UNKNOWN_AUTHOR, UNKNOWN_TITLE

logger = logging.getLogger(__name__)


def book_identity(doc: Dict[str, Any]) -> str:
    """
    Derive the key used to match a record across pages and collections.

    The upstream work key wins; records without one fall back to their raw
    title. Two keyless books sharing a title therefore share an identity.
    """
    key = doc.get("key")
    if key:
        return str(key)
    title = doc.get("title")
    if title:
        return str(title)
    return UNKNOWN_TITLE


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v not in (None, "")]
    return [str(value)]


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_book(doc: Dict[str, Any]) -> Book:
    """
    Parse a single entry of the ``docs`` array.

    Args:
        doc: One search result document

    Returns:
        Book with sentinel values substituted for missing display fields
    """
    # Extract fields with safe defaults
    title = doc.get("title") or UNKNOWN_TITLE
    authors = _as_str_list(doc.get("author_name")) or [UNKNOWN_AUTHOR]
    cover_id = doc.get("cover_i")
    if cover_id in ("", 0):
        cover_id = None

    return Book(
        identity=book_identity(doc),
        title=str(title),
        authors=authors,
        first_publish_year=_as_int(doc.get("first_publish_year")),
        cover_id=cover_id,
        key=str(doc["key"]) if doc.get("key") else None,
        edition_count=_as_int(doc.get("edition_count")),
        languages=_as_str_list(doc.get("language")),
        subjects=_as_str_list(doc.get("subject")),
    )


def parse_search_response(response_json: Any) -> Tuple[List[Book], int]:
    """
    Parse a full ``search.json`` payload.

    Args:
        response_json: Decoded response body

    Returns:
        (books, raw_count) where raw_count is the number of upstream docs,
        used for the "full page" heuristic

    Raises:
        ParseError: if the payload is not an object or ``docs`` is not a list
    """
    if not isinstance(response_json, dict):
        raise ParseError(
            f"unexpected response type {type(response_json).__name__}, expected an object"
        )

    docs = response_json.get("docs")
    if docs is None:
        return [], 0
    if not isinstance(docs, list):
        raise ParseError(f"'docs' is {type(docs).__name__}, expected a list")

    books = []
    for doc in docs:
        if not isinstance(doc, dict):
            # Log but don't fail the page - the other docs are still usable
            logger.warning(f"Skipping malformed search doc: {doc!r}")
            continue
        books.append(parse_book(doc))

    return books, len(docs)
