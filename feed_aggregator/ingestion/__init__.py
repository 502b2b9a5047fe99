"""Feed ingestion - fetching and parsing RSS/Atom feeds."""

from .interfaces import (
    Source, Article, CacheEntry, FeedFormat, FeedPreview, FetchFailure,
    AggregateResult, FetcherInterface, KeyValueStore
)
from .errors import FeedError, NetworkError, ParseError, UnrecognizedFormatError
from .parser import RSSParser, AtomParser, detect_format, parse, parse_feed, get_feed_title
from .fetcher import SourceFetcher

__all__ = [
    "Source", "Article", "CacheEntry", "FeedFormat", "FeedPreview", "FetchFailure",
    "AggregateResult", "FetcherInterface", "KeyValueStore",
    "FeedError", "NetworkError", "ParseError", "UnrecognizedFormatError",
    "RSSParser", "AtomParser", "detect_format", "parse", "parse_feed", "get_feed_title",
    "SourceFetcher"
]
