"""Platform to metrics fetcher mapping."""

from __future__ import annotations

from typing import Dict, Optional

from services.fetchers.apify import InstagramMetricsFetcher, TikTokMetricsFetcher
from services.fetchers.base import BaseMetricsFetcher
from services.fetchers.youtube import YouTubeMetricsFetcher


def default_fetchers() -> Dict[str, BaseMetricsFetcher]:
    return {
        "youtube": YouTubeMetricsFetcher(),
        "instagram": InstagramMetricsFetcher(),
        "tiktok": TikTokMetricsFetcher(),
    }


def get_metrics_fetcher(
    platform: str,
    fetchers: Optional[Dict[str, BaseMetricsFetcher]] = None,
) -> Optional[BaseMetricsFetcher]:
    """Fetcher for a platform tag, or None when the platform is unsupported."""
    registry = fetchers if fetchers is not None else default_fetchers()
    return registry.get(platform)
