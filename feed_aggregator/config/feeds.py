"""Source list loader."""

import json
import uuid
from pathlib import Path
from typing import List

from .settings import settings
from ..ingestion.interfaces import Source


def load_sources(config_path: str = None) -> List[Source]:
    """Load source configurations from JSON file.

    Expected shape::

        {"sources": [{"url": "...", "title": "...", "use_proxy": false}],
         "settings": {"default_refresh_interval_minutes": 60}}
    """
    if config_path is None:
        config_path = settings.sources_config_path

    with open(Path(config_path)) as f:
        data = json.load(f)

    default_interval = data.get("settings", {}).get(
        "default_refresh_interval_minutes",
        settings.default_refresh_interval_minutes
    )

    sources = []
    for source_data in data.get("sources", []):
        sources.append(Source(
            id=source_data.get("id") or str(uuid.uuid4()),
            url=source_data["url"],
            title=source_data.get("title") or source_data["url"],
            refresh_interval_minutes=source_data.get(
                "refresh_interval_minutes", default_interval
            ),
            use_proxy=source_data.get("use_proxy", False),
            custom_color=source_data.get("custom_color"),
        ))

    return sources
