#!/usr/bin/env python3
"""CLI tool to manage sources and read the aggregated feed."""

import sys
import asyncio
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from feed_aggregator.config.feeds import load_sources
from feed_aggregator.ingestion.errors import FeedError
from feed_aggregator.ingestion.fetcher import SourceFetcher
from feed_aggregator.pipeline.aggregator import FeedAggregator
from feed_aggregator.storage.factory import get_cache_store, get_source_store


def print_header(title):
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def make_aggregator(failures=None):
    def record(source_id, error):
        if failures is not None:
            failures.append((source_id, error))

    fetcher = SourceFetcher(get_cache_store(), source_store=get_source_store())
    return FeedAggregator(fetcher, on_fetch_failed=record)


def cmd_list(args):
    """Show configured sources."""
    sources = get_source_store().list_sources()

    print_header("SOURCES")
    if not sources:
        print("\n  No sources configured.")
        return

    for source in sources:
        proxy = " [proxy]" if source.use_proxy else ""
        print(f"\n  {source.title}{proxy}")
        print(f"    ID:      {source.id}")
        print(f"    URL:     {source.url}")
        print(f"    Refresh: every {source.refresh_interval_minutes} min")


async def _preview(url, use_proxy):
    async with make_aggregator() as aggregator:
        return await aggregator.preview(url, use_proxy=use_proxy)


def cmd_preview(args):
    """Validate a feed URL without adding it."""
    try:
        preview = asyncio.run(_preview(args.url, args.proxy))
    except FeedError as e:
        print(f"\n  Invalid feed: {e}")
        sys.exit(1)

    print_header("PREVIEW")
    print(f"\n  Title:  {preview.title or '(none)'}")
    print(f"  Format: {preview.format.value}")
    print(f"  URL:    {preview.url}")


def cmd_add(args):
    """Validate then add a source."""
    try:
        preview = asyncio.run(_preview(args.url, args.proxy))
    except FeedError as e:
        print(f"\n  Invalid feed: {e}")
        sys.exit(1)

    try:
        source = get_source_store().add_source(
            url=args.url,
            title=args.title or preview.title or None,
            refresh_interval_minutes=args.interval,
            use_proxy=args.proxy,
        )
    except ValueError as e:
        print(f"\n  {e}")
        sys.exit(1)

    print(f"\n  Added {source.title} ({source.id})")


def cmd_remove(args):
    """Remove a source and its cache."""
    if get_source_store().remove_source(args.source_id):
        print(f"\n  Removed {args.source_id}")
    else:
        print(f"\n  No source with id {args.source_id}")
        sys.exit(1)


def cmd_import(args):
    """Add sources from a JSON config file."""
    store = get_source_store()
    for source in load_sources(args.path):
        saved = store.save_source(source)
        print(f"  {saved.title}")


async def _fetch(force, failures):
    async with make_aggregator(failures) as aggregator:
        return await aggregator.fetch_saved_sources(force_refresh=force)


def cmd_fetch(args):
    """Print the merged article stream."""
    failures = []
    articles = asyncio.run(_fetch(args.force, failures))

    print_header(f"ARTICLES ({len(articles)})")
    for article in articles[:args.limit]:
        date = article.published_at.strftime("%Y-%m-%d %H:%M") if article.published_at else "undated"
        print(f"\n  {article.title}")
        print(f"    {date}  {article.link}")

    for source_id, error in failures:
        print(f"\n  ! {source_id}: {error}")


def main():
    parser = argparse.ArgumentParser(
        description="Manage feed sources and read the aggregated stream"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # list
    subparsers.add_parser("list", help="List configured sources")

    # preview
    p = subparsers.add_parser("preview", help="Validate a feed URL")
    p.add_argument("url", help="Feed URL")
    p.add_argument("--proxy", action="store_true", help="Route through the proxy")

    # add
    p = subparsers.add_parser("add", help="Add a source")
    p.add_argument("url", help="Feed URL")
    p.add_argument("--title", help="Display title (defaults to the feed's own)")
    p.add_argument("--interval", type=int, help="Refresh interval in minutes")
    p.add_argument("--proxy", action="store_true", help="Route through the proxy")

    # remove
    p = subparsers.add_parser("remove", help="Remove a source")
    p.add_argument("source_id", help="Source id")

    # import
    p = subparsers.add_parser("import", help="Import sources from JSON")
    p.add_argument("path", help="Path to sources JSON")

    # fetch
    p = subparsers.add_parser("fetch", help="Fetch and print all articles")
    p.add_argument("--force", action="store_true", help="Ignore fresh cache entries")
    p.add_argument("--limit", type=int, default=30, help="Max articles to print")

    args = parser.parse_args()

    if args.command == "list":
        cmd_list(args)
    elif args.command == "preview":
        cmd_preview(args)
    elif args.command == "add":
        cmd_add(args)
    elif args.command == "remove":
        cmd_remove(args)
    elif args.command == "import":
        cmd_import(args)
    elif args.command == "fetch":
        cmd_fetch(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
