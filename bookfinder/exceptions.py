"""Errors raised by the Open Library search clients."""
from typing import Optional


class FetchError(Exception):
    """A search request could not produce a batch of records."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(FetchError):
    """Network unreachable, connection reset, or transport timeout."""


class HttpStatusError(FetchError):
    """Upstream answered with a non-2xx status code."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(FetchError):
    """Response body was not JSON or did not have the expected shape."""
