"""In-memory bookmarks and reading list, keyed by book identity."""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, List, Optional
import logging

from bookfinder.models import Book

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Shelf:
    """Insertion-ordered mapping of identity -> value with no duplicates."""

    def __init__(self):
        self._entries: Dict[str, object] = {}

    def contains(self, identity: str) -> bool:
        return identity in self._entries

    def __contains__(self, identity: str) -> bool:
        return self.contains(identity)

    def __len__(self) -> int:
        return len(self._entries)

    def identities(self) -> List[str]:
        return list(self._entries)

    def _discard(self, identity: str) -> bool:
        # dict deletion keeps the relative order of the remaining keys
        return self._entries.pop(identity, None) is not None


class Bookmarks(_Shelf):
    """Bookmarked books. Toggling twice leaves the shelf unchanged."""

    def toggle(self, book: Book) -> bool:
        """
        Add the book if absent, remove it if present.

        Returns:
            True if the book is bookmarked after the call
        """
        if self._discard(book.identity):
            logger.debug(f"Bookmark removed: {book.identity}")
            return False
        self._entries[book.identity] = book
        logger.debug(f"Bookmark added: {book.identity}")
        return True

    def books(self) -> List[Book]:
        return list(self._entries.values())

    def __iter__(self) -> Iterator[Book]:
        return iter(self.books())


@dataclass(frozen=True)
class ReadingListEntry:
    book: Book
    added_at: datetime

    @property
    def identity(self) -> str:
        return self.book.identity


class ReadingList(_Shelf):
    """Books saved for later, each stamped with when it was added."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        super().__init__()
        self._clock = clock or _utcnow

    def add(self, book: Book) -> bool:
        """
        Add a book unless it is already on the list.

        Returns:
            True if the book was inserted, False if it was already present
        """
        if book.identity in self._entries:
            return False
        self._entries[book.identity] = ReadingListEntry(book=book, added_at=self._clock())
        logger.debug(f"Reading list add: {book.identity}")
        return True

    def remove(self, identity: str) -> bool:
        """Remove by identity; absent identities are ignored."""
        removed = self._discard(identity)
        if removed:
            logger.debug(f"Reading list remove: {identity}")
        return removed

    def entries(self) -> List[ReadingListEntry]:
        return list(self._entries.values())

    def get(self, identity: str) -> Optional[ReadingListEntry]:
        return self._entries.get(identity)

    def __iter__(self) -> Iterator[ReadingListEntry]:
        return iter(self.entries())
