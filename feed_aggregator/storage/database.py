"""Durable key-value storage backing the source list and feed cache."""

from typing import Dict, Optional
from pathlib import Path

from sqlalchemy.orm import sessionmaker
import structlog

from .models import KeyValueModel, init_db
from ..ingestion.interfaces import KeyValueStore
from ..config.settings import settings

logger = structlog.get_logger()


class SqlKeyValueStore(KeyValueStore):
    """SQLAlchemy-backed key-value store (SQLite by default)."""

    def __init__(self, database_url: str = None):
        if database_url is None:
            database_url = settings.database_url

        # Ensure data directory exists
        if database_url.startswith("sqlite:///"):
            db_path = database_url.replace("sqlite:///", "")
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = init_db(database_url)
        self.Session = sessionmaker(bind=self.engine)

    def read(self, key: str) -> Optional[str]:
        session = self.Session()
        try:
            model = session.get(KeyValueModel, key)
            return model.value if model else None
        finally:
            session.close()

    def write(self, key: str, value: str) -> None:
        session = self.Session()
        try:
            session.merge(KeyValueModel(key=key, value=value))
            session.commit()
            logger.debug("kv_written", key=key, size=len(value))
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def delete(self, key: str) -> None:
        session = self.Session()
        try:
            model = session.get(KeyValueModel, key)
            if model:
                session.delete(model)
                session.commit()
                logger.debug("kv_deleted", key=key)
        finally:
            session.close()


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store for tests and throwaway runs."""

    def __init__(self, initial: Dict[str, str] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def write(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
