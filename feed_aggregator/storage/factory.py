"""Factory functions to create storage instances.

The key-value backend is picked from FEEDS_DATABASE_URL: any SQLAlchemy
URL selects the SQL store, and ``memory://`` keeps everything in process.
"""

import os
from functools import lru_cache

import structlog

from .cache import CacheStore
from .sources import SourceStore

logger = structlog.get_logger()


def get_database_url() -> str:
    """Get database URL from environment, with fallback to SQLite."""
    url = os.environ.get('FEEDS_DATABASE_URL')
    if url:
        return url

    from ..config.settings import settings
    return settings.database_url


@lru_cache(maxsize=1)
def get_key_value_store():
    """Get the process-wide key-value store."""
    url = get_database_url()

    if url.startswith('memory://'):
        from .database import MemoryKeyValueStore
        logger.info("using_memory_store")
        return MemoryKeyValueStore()

    from .database import SqlKeyValueStore
    logger.info("using_sql_store", url=url[:40] + "...")
    return SqlKeyValueStore(url)


@lru_cache(maxsize=1)
def get_cache_store() -> CacheStore:
    return CacheStore(get_key_value_store())


@lru_cache(maxsize=1)
def get_source_store() -> SourceStore:
    return SourceStore(get_key_value_store(), cache=get_cache_store())


def clear_cache():
    """Clear cached instances (useful for testing)."""
    get_key_value_store.cache_clear()
    get_cache_store.cache_clear()
    get_source_store.cache_clear()
