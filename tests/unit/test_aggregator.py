"""Unit tests for multi-source aggregation."""

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from feed_aggregator.ingestion.errors import NetworkError, UnrecognizedFormatError
from feed_aggregator.ingestion.interfaces import Article, Source
from feed_aggregator.pipeline.aggregator import FeedAggregator, merge_articles


def _rss(title: str, items) -> str:
    """Build an RSS document from (guid, pubDate or None) pairs."""
    body = []
    for guid, pub_date in items:
        date = f"<pubDate>{pub_date}</pubDate>" if pub_date else ""
        body.append(f"<item><guid>{guid}</guid><title>{guid}</title>{date}</item>")
    return f"<rss><channel><title>{title}</title>{''.join(body)}</channel></rss>"


def _article(article_id: str, published_at=None) -> Article:
    return Article(
        id=article_id,
        source_id="s",
        source_url="https://example.com/feed",
        published_at=published_at,
    )


def _sources():
    return [
        Source(id="a", url="https://a.example.com/rss", title="A"),
        Source(id="b", url="https://b.example.com/rss", title="B"),
        Source(id="c", url="https://c.example.com/rss", title="C"),
    ]


@pytest.fixture
def aggregator(fetcher):
    return FeedAggregator(fetcher)


class TestMergeArticles:
    """Tests for merge ordering."""

    def test_dated_desc_then_undated(self):
        """2024-06-01, 2024-01-01, then the undated article."""
        jan = _article("jan", datetime(2024, 1, 1, tzinfo=timezone.utc))
        none = _article("none")
        jun = _article("jun", datetime(2024, 6, 1, tzinfo=timezone.utc))

        merged = merge_articles([[jan, none, jun]])

        assert [a.id for a in merged] == ["jun", "jan", "none"]

    def test_undated_keep_encounter_order(self):
        first, second, third = _article("1"), _article("2"), _article("3")
        dated = _article("d", datetime(2020, 1, 1, tzinfo=timezone.utc))

        merged = merge_articles([[first, second], [dated, third]])

        assert [a.id for a in merged] == ["d", "1", "2", "3"]

    def test_across_sources(self):
        """Later dates always come first, regardless of source."""
        older = _article("older", datetime(2024, 1, 1, tzinfo=timezone.utc))
        newer = _article("newer", datetime(2024, 2, 1, tzinfo=timezone.utc))
        newest = _article("newest", datetime(2024, 3, 1, tzinfo=timezone.utc))

        merged = merge_articles([[older, newest], [newer]])

        assert [a.id for a in merged] == ["newest", "newer", "older"]

    def test_empty(self):
        assert merge_articles([]) == []


@pytest.mark.asyncio
class TestFeedAggregator:
    """Tests for FeedAggregator with a fake HTTP session."""

    async def test_no_sources(self, aggregator, fake_session):
        """Zero sources yields an empty list without network access."""
        assert await aggregator.fetch_all([]) == []
        assert fake_session.calls == []

    async def test_partial_failure_isolation(self, aggregator, fake_session):
        """One 404 source drops out; the others are merged and sorted."""
        a, b, c = _sources()
        fake_session.routes[a.url] = (200, _rss("A", [
            ("a1", "Mon, 01 Jan 2024 00:00:00 GMT"),
            ("a2", None),
        ]))
        fake_session.routes[b.url] = (404, "")
        fake_session.routes[c.url] = (200, _rss("C", [
            ("c1", "Sat, 01 Jun 2024 00:00:00 GMT"),
        ]))

        articles = await aggregator.fetch_all([a, b, c])

        assert [x.id for x in articles] == ["c1", "a1", "a2"]
        assert len(fake_session.calls) == 3

    async def test_failures_reported(self, fetcher, fake_session):
        """Dropped sources show up as (source_id, error) pairs."""
        on_failed = MagicMock()
        aggregator = FeedAggregator(fetcher, on_fetch_failed=on_failed)
        a, b, c = _sources()
        fake_session.routes[a.url] = (200, _rss("A", [("a1", None)]))
        fake_session.routes[c.url] = (200, "<html/>")

        result = await aggregator.fetch_all_with_failures([a, b, c])

        assert [x.id for x in result.articles] == ["a1"]
        assert {f.source_id for f in result.failures} == {"b", "c"}
        errors = {f.source_id: f.error for f in result.failures}
        assert isinstance(errors["b"], NetworkError)
        assert isinstance(errors["c"], UnrecognizedFormatError)
        assert on_failed.call_count == 2

    async def test_total_failure_is_empty(self, aggregator):
        """Every source failing yields [] rather than an exception."""
        assert await aggregator.fetch_all(_sources()) == []

    async def test_failed_source_with_cache_contributes(self, aggregator, fake_session, cache_store, clock):
        """A failing source with a stale cache still contributes articles."""
        a, b, _ = _sources()
        cached = _article("cached-b", datetime(2024, 3, 1, tzinfo=timezone.utc))
        cache_store.set(b.id, "<rss/>", [cached])
        clock.advance(days=1)
        fake_session.routes[a.url] = (200, _rss("A", [("a1", "Mon, 01 Jan 2024 00:00:00 GMT")]))
        fake_session.routes[b.url] = (500, "")

        result = await aggregator.fetch_all_with_failures([a, b])

        assert [x.id for x in result.articles] == ["cached-b", "a1"]
        assert result.failures == []

    async def test_force_refresh_passed_through(self, aggregator, fake_session, cache_store):
        a, _, _ = _sources()
        cache_store.set(a.id, "<rss/>", [_article("old")])
        fake_session.routes[a.url] = (200, _rss("A", [("fresh", None)]))

        assert [x.id for x in await aggregator.fetch_all([a])] == ["old"]
        assert [x.id for x in await aggregator.fetch_all([a], force_refresh=True)] == ["fresh"]

    async def test_fetch_saved_sources(self, aggregator, fake_session, source_store):
        a, b, _ = _sources()
        source_store.save_source(a)
        source_store.save_source(b)
        fake_session.routes[a.url] = (200, _rss("Feed A", [("a1", None)]))
        fake_session.routes[b.url] = (200, _rss("Feed B", [("b1", None)]))

        articles = await aggregator.fetch_saved_sources()

        assert [x.id for x in articles] == ["a1", "b1"]
        assert [s.title for s in aggregator.sources()] == ["Feed A", "Feed B"]

    async def test_fetch_saved_sources_requires_store(self, cache_store, fake_session):
        from feed_aggregator.ingestion.fetcher import SourceFetcher
        aggregator = FeedAggregator(SourceFetcher(cache_store, session=fake_session))

        with pytest.raises(RuntimeError):
            await aggregator.fetch_saved_sources()
        assert aggregator.sources() is None

    async def test_preview_propagates(self, aggregator, fake_session):
        """preview never swallows errors."""
        with pytest.raises(NetworkError):
            await aggregator.preview("https://nowhere.example.com/rss")

    async def test_preview_success(self, aggregator, fake_session):
        fake_session.routes["https://a.example.com/rss"] = (200, _rss("Feed A", []))

        preview = await aggregator.preview("https://a.example.com/rss")

        assert preview.title == "Feed A"
