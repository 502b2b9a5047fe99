"""Source management - CRUD operations for configured feeds."""

import json
import uuid
from dataclasses import replace
from typing import List, Optional

import structlog

from .cache import CacheStore
from ..config.settings import settings
from ..ingestion.interfaces import KeyValueStore, Source, utcnow

logger = structlog.get_logger()

SOURCES_KEY = "feed_sources"


class SourceStore:
    """Persists the list of configured sources.

    URLs are unique within the store. Removing a source also drops its
    cache entry when a CacheStore is wired in.
    """

    def __init__(self, kv: KeyValueStore, cache: CacheStore = None):
        self.kv = kv
        self.cache = cache

    def _load(self) -> List[Source]:
        raw = self.kv.read(SOURCES_KEY)
        if not raw:
            return []
        return [Source.from_dict(s) for s in json.loads(raw)]

    def _save(self, sources: List[Source]) -> None:
        self.kv.write(SOURCES_KEY, json.dumps([s.to_dict() for s in sources]))

    def list_sources(self) -> List[Source]:
        """List all configured sources in insertion order."""
        return self._load()

    def get_source(self, source_id: str) -> Optional[Source]:
        for source in self._load():
            if source.id == source_id:
                return source
        return None

    def add_source(
        self,
        url: str,
        title: str = None,
        refresh_interval_minutes: int = None,
        use_proxy: bool = False,
        custom_color: str = None,
    ) -> Source:
        """Add a new source."""
        sources = self._load()

        # Check for duplicates
        for existing in sources:
            if existing.url == url:
                raise ValueError(f"Source with URL already exists: {url}")

        source = Source(
            id=str(uuid.uuid4()),
            url=url,
            title=title or url,
            refresh_interval_minutes=(
                refresh_interval_minutes or settings.default_refresh_interval_minutes
            ),
            use_proxy=use_proxy,
            custom_color=custom_color,
            added_at=utcnow(),
        )
        sources.append(source)
        self._save(sources)

        logger.info("source_added", id=source.id, url=url)
        return source

    def save_source(self, source: Source) -> Source:
        """Insert or update by URL, keeping the stored id and added_at."""
        sources = self._load()

        for i, existing in enumerate(sources):
            if existing.url == source.url:
                merged = replace(source, id=existing.id, added_at=existing.added_at)
                sources[i] = merged
                self._save(sources)
                logger.info("source_updated", id=merged.id)
                return merged

        sources.append(source)
        self._save(sources)
        logger.info("source_added", id=source.id, url=source.url)
        return source

    def update_source(self, source: Source) -> bool:
        """Replace the stored source with the same id."""
        sources = self._load()

        for i, existing in enumerate(sources):
            if existing.id == source.id:
                sources[i] = source
                self._save(sources)
                logger.info("source_updated", id=source.id)
                return True

        return False

    def remove_source(self, source_id: str) -> bool:
        """Delete a source and its cached payload."""
        sources = self._load()
        remaining = [s for s in sources if s.id != source_id]

        if len(remaining) == len(sources):
            return False

        self._save(remaining)
        if self.cache is not None:
            self.cache.clear(source_id)
        logger.info("source_removed", id=source_id)
        return True
