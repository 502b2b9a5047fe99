"""Per-source TTL cache of raw feed payloads and their parsed articles."""

import json
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import structlog

from ..ingestion.interfaces import Article, CacheEntry, KeyValueStore, utcnow

logger = structlog.get_logger()

CACHE_KEY = "feed_cache"


class CacheStore:
    """Owns the lifecycle of CacheEntry records.

    All entries live under a single logical key of the injected
    KeyValueStore as one JSON object keyed by source id. Every
    operation reads or writes that object synchronously, so two fetch
    pipelines sharing the store never interleave a read-modify-write.

    Args:
        kv: Persistence backend
        clock: Returns the current aware datetime; injectable for tests
    """

    def __init__(self, kv: KeyValueStore, clock: Callable[[], datetime] = None):
        self.kv = kv
        self.clock = clock or utcnow

    def get(self, source_id: str) -> Optional[CacheEntry]:
        """Cached entry for a source, stale or not."""
        data = self._load().get(source_id)
        if data is None:
            return None
        return CacheEntry.from_dict(data)

    def set(self, source_id: str, raw_payload: str, articles: List[Article]) -> CacheEntry:
        """Replace the source's entry wholesale."""
        entry = CacheEntry(
            source_id=source_id,
            raw_payload=raw_payload,
            articles=list(articles),
            cached_at=self.clock(),
        )
        cache = self._load()
        cache[source_id] = entry.to_dict()
        self._save(cache)
        logger.debug("cache_set", source_id=source_id, articles=len(entry.articles))
        return entry

    def clear(self, source_id: str) -> None:
        cache = self._load()
        if cache.pop(source_id, None) is not None:
            if cache:
                self._save(cache)
            else:
                self.kv.delete(CACHE_KEY)
            logger.debug("cache_cleared", source_id=source_id)

    def is_valid(self, source_id: str, refresh_interval_minutes: int) -> bool:
        """True while the entry is younger than the refresh interval."""
        entry = self.get(source_id)
        if entry is None:
            return False
        age = self.clock() - entry.cached_at
        return age < timedelta(minutes=refresh_interval_minutes)

    def _load(self) -> Dict[str, dict]:
        raw = self.kv.read(CACHE_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("cache_corrupt", error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, cache: Dict[str, dict]) -> None:
        self.kv.write(CACHE_KEY, json.dumps(cache, ensure_ascii=False))
