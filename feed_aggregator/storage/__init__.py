"""Persistence: key-value backends, feed cache and source list."""

from .database import SqlKeyValueStore, MemoryKeyValueStore
from .cache import CacheStore
from .sources import SourceStore
from .models import KeyValueModel, init_db

__all__ = [
    "SqlKeyValueStore", "MemoryKeyValueStore", "CacheStore", "SourceStore",
    "KeyValueModel", "init_db"
]
