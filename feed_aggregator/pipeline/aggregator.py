"""Multi-source aggregation: concurrent fan-out, failure isolation, merge."""

import asyncio
from typing import Callable, Iterable, List, Optional

import structlog

from ..ingestion.fetcher import SourceFetcher
from ..ingestion.interfaces import AggregateResult, Article, FeedPreview, FetchFailure, Source
from ..storage.sources import SourceStore

logger = structlog.get_logger()


def merge_articles(article_lists: Iterable[List[Article]]) -> List[Article]:
    """Concatenate and order newest first.

    Undated articles go last, keeping the order they were encountered in.
    """
    dated: List[Article] = []
    undated: List[Article] = []
    for articles in article_lists:
        for article in articles:
            (dated if article.published_at is not None else undated).append(article)

    # list.sort is stable, so equal timestamps keep encounter order too
    dated.sort(key=lambda a: a.published_at, reverse=True)
    return dated + undated


class FeedAggregator:
    """Fetches every configured source and merges the results."""

    def __init__(
        self,
        fetcher: SourceFetcher,
        source_store: SourceStore = None,
        on_fetch_failed: Callable[[str, Exception], None] = None,
    ):
        self.fetcher = fetcher
        self.source_store = source_store or fetcher.source_store
        self.on_fetch_failed = on_fetch_failed  # Callback for failure reporting

    async def __aenter__(self):
        await self.fetcher.__aenter__()
        return self

    async def __aexit__(self, *args):
        await self.fetcher.__aexit__(*args)

    async def fetch_all(self, sources: List[Source], force_refresh: bool = False) -> List[Article]:
        """Fetch from all sources concurrently; failed sources contribute nothing."""
        result = await self.fetch_all_with_failures(sources, force_refresh=force_refresh)
        return result.articles

    async def fetch_all_with_failures(
        self,
        sources: List[Source],
        force_refresh: bool = False
    ) -> AggregateResult:
        """Like fetch_all, but also report which sources were dropped."""
        sources = list(sources)
        if not sources:
            return AggregateResult()

        tasks = [self.fetcher.fetch_articles(source, force_refresh) for source in sources]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        succeeded: List[List[Article]] = []
        failures: List[FetchFailure] = []
        for source, result in zip(sources, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "feed_fetch_exception",
                    source_id=source.id,
                    url=source.url,
                    error=str(result)
                )
                failures.append(FetchFailure(source_id=source.id, error=result))
                if self.on_fetch_failed:
                    self.on_fetch_failed(source.id, result)
                continue
            succeeded.append(result)

        articles = merge_articles(succeeded)

        logger.info(
            "all_feeds_fetched",
            total=len(articles),
            sources=len(sources),
            failed=len(failures)
        )
        return AggregateResult(articles=articles, failures=failures)

    async def fetch_saved_sources(self, force_refresh: bool = False) -> List[Article]:
        """Fetch every source currently in the source store."""
        if self.source_store is None:
            raise RuntimeError("No source store configured")
        return await self.fetch_all(self.source_store.list_sources(), force_refresh)

    async def preview(self, url: str, use_proxy: bool = False) -> FeedPreview:
        """Check a URL is a readable feed. Errors are not swallowed."""
        return await self.fetcher.preview(url, use_proxy=use_proxy)

    def sources(self) -> Optional[List[Source]]:
        """Current source list, including any corrected titles."""
        if self.source_store is None:
            return None
        return self.source_store.list_sources()
