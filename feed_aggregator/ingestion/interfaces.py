"""Interface definitions for feed ingestion."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List
from enum import Enum


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class FeedFormat(Enum):
    """Feed vocabularies we recognize."""
    RSS = "rss"
    ATOM = "atom"
    UNKNOWN = "unknown"


@dataclass
class Source:
    """A configured feed endpoint."""
    id: str
    url: str
    title: str = ""
    refresh_interval_minutes: int = 60
    use_proxy: bool = False
    custom_color: Optional[str] = None
    added_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "refresh_interval_minutes": self.refresh_interval_minutes,
            "use_proxy": self.use_proxy,
            "custom_color": self.custom_color,
            "added_at": self.added_at.isoformat() if self.added_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Source":
        return cls(
            id=data["id"],
            url=data["url"],
            title=data.get("title") or "",
            refresh_interval_minutes=data.get("refresh_interval_minutes", 60),
            use_proxy=data.get("use_proxy", False),
            custom_color=data.get("custom_color"),
            added_at=_parse_timestamp(data.get("added_at")) or utcnow(),
        )


@dataclass(frozen=True)
class Article:
    """Canonical article record, identical in shape for RSS and Atom input."""
    id: str
    source_id: str
    source_url: str
    title: str = "Untitled"
    link: str = ""
    description: str = ""  # Raw markup, never stripped
    published_at: Optional[datetime] = None
    author: str = ""
    image: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "source_id": self.source_id,
            "source_url": self.source_url,
            "title": self.title,
            "link": self.link,
            "description": self.description,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "author": self.author,
            "image": self.image,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Article":
        return cls(
            id=data["id"],
            source_id=data["source_id"],
            source_url=data["source_url"],
            title=data.get("title", "Untitled"),
            link=data.get("link", ""),
            description=data.get("description", ""),
            published_at=_parse_timestamp(data.get("published_at")),
            author=data.get("author", ""),
            image=data.get("image"),
        )


@dataclass
class CacheEntry:
    """Raw payload and its parse result for one source.

    ``articles`` is always the exact parse result of ``raw_payload``.
    """
    source_id: str
    raw_payload: str
    articles: List[Article]
    cached_at: datetime

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "source_id": self.source_id,
            "raw_payload": self.raw_payload,
            "articles": [a.to_dict() for a in self.articles],
            "cached_at": self.cached_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        return cls(
            source_id=data["source_id"],
            raw_payload=data["raw_payload"],
            articles=[Article.from_dict(a) for a in data.get("articles", [])],
            cached_at=_parse_timestamp(data["cached_at"]),
        )


@dataclass
class FeedPreview:
    """What a feed URL resolves to, before it is added as a source."""
    title: str
    format: FeedFormat
    url: str


@dataclass
class FetchFailure:
    """A source that produced no articles and had no cache to fall back on."""
    source_id: str
    error: Exception


@dataclass
class AggregateResult:
    """Merged articles plus the sources that were dropped."""
    articles: List[Article] = field(default_factory=list)
    failures: List[FetchFailure] = field(default_factory=list)


class FetcherInterface:
    """Interface for a single source's fetch pipeline."""

    async def fetch_articles(self, source: Source, force_refresh: bool = False) -> List[Article]:
        """Fetch articles for one source, honoring the cache."""
        raise NotImplementedError

    async def preview(self, url: str, use_proxy: bool = False) -> FeedPreview:
        """Fetch and inspect a feed without caching it."""
        raise NotImplementedError


class KeyValueStore:
    """Interface for durable string storage keyed by logical name."""

    def read(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent."""
        raise NotImplementedError

    def write(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        """Remove key if present."""
        raise NotImplementedError
