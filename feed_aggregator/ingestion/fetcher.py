"""Per-source fetch pipeline: cache check, download, parse, stale fallback."""

import asyncio
import time
from functools import partial
from typing import Dict, List, Optional, Tuple

import aiohttp
import structlog

from .errors import FeedError, NetworkError
from .interfaces import Article, FeedPreview, FetcherInterface, Source
from .parser import detect_format, get_feed_title, get_parser, parse_feed, parse_xml
from ..config.settings import settings
from ..storage.cache import CacheStore
from ..storage.sources import SourceStore

logger = structlog.get_logger()


class SourceFetcher(FetcherInterface):
    """Fetches one source at a time through the shared CacheStore.

    A fresh cache entry short-circuits the network. Any fetch or parse
    failure falls back to whatever the cache holds for the source, stale
    or not, and only propagates when there is nothing cached.

    Overlapping calls for the same source id share one in-flight fetch.
    A forced refresh never joins a fetch that may answer from cache, but
    any caller may join a forced one.
    """

    def __init__(
        self,
        cache: CacheStore,
        source_store: SourceStore = None,
        session: aiohttp.ClientSession = None,
        proxy_base_url: str = None,
    ):
        self.cache = cache
        self.source_store = source_store
        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None
        self.proxy_base_url = (
            settings.proxy_base_url if proxy_base_url is None else proxy_base_url
        )
        self._in_flight: Dict[Tuple[str, bool], asyncio.Task] = {}

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, *args):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=settings.fetch_timeout_seconds),
                headers={"User-Agent": settings.user_agent}
            )
            self._owns_session = True
        return self.session

    async def close(self):
        if self.session and self._owns_session:
            await self.session.close()
            self.session = None

    async def fetch_articles(self, source: Source, force_refresh: bool = False) -> List[Article]:
        """Articles for one source, from cache or network."""
        task = self._in_flight.get((source.id, True))
        if task is None and not force_refresh:
            task = self._in_flight.get((source.id, False))

        if task is None:
            key = (source.id, force_refresh)
            task = asyncio.ensure_future(self._fetch(source, force_refresh))
            self._in_flight[key] = task
            task.add_done_callback(partial(self._forget, key))
        else:
            logger.debug("fetch_joined_in_flight", source_id=source.id, force_refresh=force_refresh)
        # A cancelled caller must not cancel the fetch for the others
        return list(await asyncio.shield(task))

    def _forget(self, key: Tuple[str, bool], task: asyncio.Task):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _fetch(self, source: Source, force_refresh: bool) -> List[Article]:
        if not force_refresh and self.cache.is_valid(source.id, source.refresh_interval_minutes):
            entry = self.cache.get(source.id)
            logger.debug("cache_hit", source_id=source.id, articles=len(entry.articles))
            return entry.articles

        start_time = time.time()
        try:
            payload = await self._download(source.url, source.use_proxy)
            parsed = parse_feed(payload, source.id, source.url)
        except FeedError as e:
            logger.error(
                "feed_fetch_failed",
                source_id=source.id,
                url=source.url,
                error_type=type(e).__name__,
                error=str(e)
            )
            entry = self.cache.get(source.id)
            if entry is None:
                raise
            logger.warning(
                "serving_stale_cache",
                source_id=source.id,
                cached_at=entry.cached_at.isoformat(),
                articles=len(entry.articles)
            )
            return entry.articles

        self._update_title(source, parsed.title)
        self.cache.set(source.id, parsed.raw_payload, parsed.articles)

        logger.info(
            "feed_fetched",
            source_id=source.id,
            format=parsed.format.value,
            articles=len(parsed.articles),
            time_ms=int((time.time() - start_time) * 1000)
        )
        return parsed.articles

    def _update_title(self, source: Source, feed_title: str):
        """Adopt the feed's own title when it differs from the stored one."""
        if not feed_title or feed_title == source.title:
            return

        logger.info(
            "source_title_updated",
            source_id=source.id,
            old_title=source.title,
            new_title=feed_title
        )
        source.title = feed_title
        if self.source_store is not None:
            self.source_store.update_source(source)

    async def _download(self, url: str, use_proxy: bool) -> bytes:
        fetch_url = f"{self.proxy_base_url}{url}" if use_proxy else url
        session = self._ensure_session()

        try:
            async with session.get(fetch_url) as response:
                if not 200 <= response.status < 300:
                    raise NetworkError(
                        f"HTTP {response.status}", url=url, status=response.status
                    )
                # Raw bytes so the XML declaration decides the encoding
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{type(e).__name__}: {e}", url=url) from e

    async def preview(self, url: str, use_proxy: bool = False) -> FeedPreview:
        """Validate a feed URL before it becomes a source.

        Nothing is cached and every error reaches the caller.
        """
        payload = await self._download(url, use_proxy)
        document = parse_xml(payload, url=url)
        feed_format = detect_format(document)
        get_parser(feed_format, url=url)  # Unknown raises here

        preview = FeedPreview(
            title=get_feed_title(document, feed_format),
            format=feed_format,
            url=url,
        )
        logger.info("feed_previewed", url=url, format=feed_format.value, title=preview.title)
        return preview
