"""RSS/Atom ingestion with per-source caching and multi-source aggregation."""

__version__ = "0.1.0"
