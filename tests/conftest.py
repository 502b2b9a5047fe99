"""Pytest configuration and shared fixtures."""

import asyncio
import pytest
import tempfile
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))


RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>Example News</title>
    <link>https://news.example.com/</link>
    <item>
      <guid>https://news.example.com/a1</guid>
      <title>First story</title>
      <link>https://news.example.com/a1</link>
      <description><![CDATA[<p>Hello <b>world</b></p>]]></description>
      <pubDate>Mon, 01 Jan 2024 12:00:00 GMT</pubDate>
      <dc:creator>Jane Doe</dc:creator>
      <enclosure type="image/png" url="http://x/p.png" length="1"/>
    </item>
    <item>
      <guid>https://news.example.com/a2</guid>
      <title>Second story</title>
      <link>https://news.example.com/a2</link>
      <description>Plain text</description>
      <pubDate>Sat, 01 Jun 2024 08:30:00 +0000</pubDate>
      <media:thumbnail url="http://x/thumb.jpg"/>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Example Blog</title>
  <id>urn:example:blog</id>
  <updated>2024-03-01T10:00:00Z</updated>
  <entry>
    <id>urn:example:post-1</id>
    <title>A post</title>
    <link rel="self" href="http://y/self"/>
    <link rel="alternate" href="http://y"/>
    <updated>2024-03-01T10:00:00Z</updated>
    <summary type="html">&lt;p&gt;Summary&lt;/p&gt;</summary>
    <author><name>Sam Writer</name></author>
  </entry>
</feed>
"""


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeResponse:
    def __init__(self, status: int, body, delay: float = 0.0):
        self.status = status
        self.body = body
        self.delay = delay

    async def __aenter__(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return self

    async def __aexit__(self, *args):
        return False

    async def read(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")


class FakeSession:
    """Stands in for aiohttp.ClientSession.

    routes maps URL -> (status, body) or an exception to raise.
    Unknown URLs answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.delay = 0.0
        self.closed = False

    def get(self, url, **kwargs):
        self.calls.append(url)
        route = self.routes.get(url, (404, ""))
        if isinstance(route, BaseException):
            raise route
        status, body = route
        return FakeResponse(status, body, self.delay)

    async def close(self):
        self.closed = True


@pytest.fixture
def temp_db():
    """Provide a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield f"sqlite:///{db_path}"
    # Cleanup
    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture
def rss_feed():
    return RSS_FEED


@pytest.fixture
def atom_feed():
    return ATOM_FEED


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 7, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def kv():
    from feed_aggregator.storage.database import MemoryKeyValueStore
    return MemoryKeyValueStore()


@pytest.fixture
def cache_store(kv, clock):
    from feed_aggregator.storage.cache import CacheStore
    return CacheStore(kv, clock=clock)


@pytest.fixture
def source_store(kv, cache_store):
    from feed_aggregator.storage.sources import SourceStore
    return SourceStore(kv, cache=cache_store)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fetcher(cache_store, source_store, fake_session):
    from feed_aggregator.ingestion.fetcher import SourceFetcher
    return SourceFetcher(
        cache_store,
        source_store=source_store,
        session=fake_session,
        proxy_base_url="https://proxy.example/"
    )


@pytest.fixture
def sample_source():
    """Provide a sample source configuration."""
    from feed_aggregator.ingestion.interfaces import Source
    return Source(
        id="src-news",
        url="https://news.example.com/feed.xml",
        title="news.example.com",
        refresh_interval_minutes=30,
    )


@pytest.fixture
def sample_article():
    """Provide a sample Article."""
    from feed_aggregator.ingestion.interfaces import Article
    return Article(
        id="https://news.example.com/a1",
        source_id="src-news",
        source_url="https://news.example.com/feed.xml",
        title="First story",
        link="https://news.example.com/a1",
        description="<p>Hello</p>",
        published_at=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        author="Jane Doe",
        image="http://x/p.png",
    )
