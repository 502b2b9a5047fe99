"""Application settings with environment variable support."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import Optional
from pathlib import Path


# Compute base_dir at module level
_BASE_DIR = Path(__file__).parent.parent.parent.resolve()


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FEEDS_",  # FEEDS_DATABASE_URL, FEEDS_PROXY_BASE_URL, etc.
    )

    # Paths - computed from base_dir
    base_dir: Path = _BASE_DIR
    data_dir: Path = _BASE_DIR / "data"
    sources_config_path: Path = _BASE_DIR / "config" / "sources.json"

    # Persistence
    database_url: str = f"sqlite:///{_BASE_DIR / 'data' / 'feeds.db'}"

    # Network
    proxy_base_url: str = "https://cors-anywhere.com/"
    fetch_timeout_seconds: Optional[float] = 30.0  # None disables the timeout
    user_agent: str = "FeedAggregator/1.0"

    # Sources
    default_refresh_interval_minutes: int = 60

    @field_validator("fetch_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("fetch_timeout_seconds must be positive or unset")
        return value


settings = Settings()
