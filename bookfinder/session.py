"""
Search session state and the transitions that advance it.

A SessionState is immutable; every transition takes the current state and
returns the next one, so controllers only ever swap a single reference.
Each fetch is issued under a RequestTag. A response is applied only while
its tag is still the pending one: a new search or a field change replaces
the pending tag, and whatever the superseded request returns is dropped.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from bookfinder.models import Book, QuerySnapshot, SearchPage


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


@dataclass(frozen=True)
class RequestTag:
    """Identifies the session generation and page a fetch was issued for."""
    generation: int
    page: int
    query: QuerySnapshot


@dataclass(frozen=True)
class SessionState:
    results: Tuple[Book, ...] = ()
    page: int = 1
    has_more: bool = False
    status: SessionStatus = SessionStatus.IDLE
    error_message: Optional[str] = None
    query: Optional[QuerySnapshot] = None
    generation: int = 0
    pending: Optional[RequestTag] = None

    @property
    def is_loading(self) -> bool:
        return self.status == SessionStatus.LOADING

    @property
    def can_load_more(self) -> bool:
        return not self.is_loading and self.has_more and self.query is not None


def start_search(state: SessionState, query: QuerySnapshot) -> Tuple[SessionState, Optional[RequestTag]]:
    """
    Begin a new search for page 1.

    Blank queries leave the state untouched and return no tag. Otherwise
    accumulated results are cleared before the fetch is issued.
    """
    if query.is_blank:
        return state, None

    generation = state.generation + 1
    tag = RequestTag(generation=generation, page=1, query=query)
    return SessionState(
        status=SessionStatus.LOADING,
        query=query,
        generation=generation,
        pending=tag,
    ), tag


def start_load_more(state: SessionState) -> Tuple[SessionState, Optional[RequestTag]]:
    """Begin fetching the next page, or return no tag if that isn't allowed now."""
    if not state.can_load_more:
        return state, None

    tag = RequestTag(generation=state.generation, page=state.page + 1, query=state.query)
    return replace(
        state,
        status=SessionStatus.LOADING,
        error_message=None,
        pending=tag,
    ), tag


def is_current(state: SessionState, tag: RequestTag) -> bool:
    return state.pending is not None and state.pending == tag


def complete_fetch(state: SessionState, tag: RequestTag, page: SearchPage) -> SessionState:
    """Apply a successful response. Stale responses return the state unchanged."""
    if not is_current(state, tag):
        return state

    if tag.page == 1:
        results = tuple(page.records)
    else:
        results = state.results + tuple(page.records)

    return replace(
        state,
        results=results,
        page=tag.page,
        has_more=page.has_more,
        status=SessionStatus.IDLE,
        error_message=None,
        pending=None,
    )


def fail_fetch(state: SessionState, tag: RequestTag, message: str) -> SessionState:
    """
    Apply a failed response.

    A failed first page clears results since they would belong to the
    previous query. A failed later page keeps what was already loaded and
    leaves has_more set so the same page can be requested again.
    """
    if not is_current(state, tag):
        return state

    if tag.page == 1:
        return replace(
            state,
            results=(),
            has_more=False,
            status=SessionStatus.ERROR,
            error_message=message,
            pending=None,
        )

    return replace(
        state,
        status=SessionStatus.ERROR,
        error_message=message,
        pending=None,
    )


def reset_pagination(state: SessionState) -> SessionState:
    """
    Drop results and pagination, e.g. because the search field changed.

    Takes effect immediately, even with a fetch in flight; the new
    generation makes that fetch's response stale.
    """
    return SessionState(generation=state.generation + 1)
