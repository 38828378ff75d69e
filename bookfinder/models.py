"""Data models for books and search queries."""
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Optional, List, Union

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"
UNKNOWN_YEAR = "Unknown Year"


@dataclass(frozen=True)
class Book:
    """Normalized search result record."""
    identity: str
    title: str
    authors: List[str]
    first_publish_year: Optional[int]
    cover_id: Optional[Union[int, str]]
    key: Optional[str] = None
    edition_count: Optional[int] = None
    languages: List[str] = dataclass_field(default_factory=list)
    subjects: List[str] = dataclass_field(default_factory=list)

    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.authors)

    @property
    def year_str(self) -> str:
        """Publication year, or the unknown-year sentinel."""
        if self.first_publish_year is None:
            return UNKNOWN_YEAR
        return str(self.first_publish_year)

    @property
    def has_cover(self) -> bool:
        return self.cover_id not in (None, "")


class SearchField(str, Enum):
    """Upstream search index a query is run against."""
    TITLE = "title"
    AUTHOR = "author"
    SUBJECT = "subject"

    @classmethod
    def parse(cls, value: Union[str, "SearchField"]) -> "SearchField":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown search field {value!r} (expected one of: {choices})")


@dataclass
class SearchFilters:
    """Optional narrowing applied to every page of a search."""
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    language: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.year_from is None and self.year_to is None and not self.language

    def clear(self):
        """Drop every active filter."""
        self.year_from = None
        self.year_to = None
        self.language = None


@dataclass
class SearchQuery:
    """
    What the user is searching for.

    Once a controller owns the query, change the field through
    ``change_field`` so results from the old index are dropped.
    """
    text: str = ""
    field: SearchField = SearchField.TITLE
    filters: SearchFilters = dataclass_field(default_factory=SearchFilters)

    @property
    def is_blank(self) -> bool:
        return not self.text or not self.text.strip()

    def snapshot(self) -> "QuerySnapshot":
        """Freeze the current values so later edits don't leak into a request."""
        return QuerySnapshot(
            text=(self.text or "").strip(),
            field=SearchField.parse(self.field),
            year_from=self.filters.year_from,
            year_to=self.filters.year_to,
            language=self.filters.language or None,
        )


@dataclass(frozen=True)
class QuerySnapshot:
    """Immutable copy of a SearchQuery taken when a search is issued."""
    text: str
    field: SearchField = SearchField.TITLE
    year_from: Optional[int] = None
    year_to: Optional[int] = None
    language: Optional[str] = None

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class SearchPage:
    """One page of results as returned by a client."""
    records: List[Book]
    has_more: bool
