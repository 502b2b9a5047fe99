"""Pipeline orchestration - multi-source aggregation."""

from .aggregator import FeedAggregator, merge_articles

__all__ = ["FeedAggregator", "merge_articles"]
