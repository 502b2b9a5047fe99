"""Errors raised while fetching and parsing a feed."""

from typing import Optional


class FeedError(RuntimeError):
    """Base class for per-source ingestion failures."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class NetworkError(FeedError):
    """Non-2xx response, transport failure or timeout."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, url=url)
        self.status = status


class ParseError(FeedError):
    """The payload is not well-formed XML."""


class UnrecognizedFormatError(FeedError):
    """Well-formed XML that is neither RSS nor Atom."""
