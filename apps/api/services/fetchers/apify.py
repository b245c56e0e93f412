"""Instagram and TikTok metrics fetchers backed by Apify actor runs."""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Callable, Dict, Optional

from config import require_apify_token, settings
from ingestion.apify import ApifyClient
from services.fetchers.base import BaseMetricsFetcher
from services.fetchers.types import MetricsFetchError, MetricsResult


def default_apify_client() -> ApifyClient:
    return ApifyClient(
        require_apify_token(),
        base_url=settings.APIFY_BASE_URL,
        poll_interval_seconds=settings.APIFY_POLL_INTERVAL_SECONDS,
        max_poll_attempts=settings.APIFY_POLL_MAX_ATTEMPTS,
        timeout_seconds=settings.ANALYTICS_HTTP_TIMEOUT_SECONDS,
    )


def _nested(item: Dict[str, Any], *keys: str) -> Any:
    """First truthy value among top-level keys, then the same keys under videoMeta."""
    for key in keys:
        if item.get(key):
            return item[key]
    meta = item.get("videoMeta")
    if isinstance(meta, dict):
        for key in keys:
            if meta.get(key):
                return meta[key]
    return 0


class ApifyMetricsFetcher(BaseMetricsFetcher):
    actor_id_setting: str

    def __init__(
        self,
        client_factory: Callable[[], ApifyClient] = default_apify_client,
        *,
        actor_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        self._client_factory = client_factory
        self.actor_id = actor_id or getattr(settings, self.actor_id_setting)

    @abstractmethod
    def build_input(self, url: str) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def parse_item(self, item: Dict[str, Any]) -> MetricsResult:
        raise NotImplementedError

    async def _fetch_raw(self, url: str) -> MetricsResult:
        client = self._client_factory()
        items = await client.run_actor(self.actor_id, self.build_input(url))
        if not items:
            raise MetricsFetchError(f"No data found for the {self.platform.capitalize()} URL")
        return self.parse_item(items[0])


class InstagramMetricsFetcher(ApifyMetricsFetcher):
    platform = "instagram"
    actor_id_setting = "APIFY_INSTAGRAM_ACTOR_ID"

    def build_input(self, url: str) -> Dict[str, Any]:
        return {"username": [url], "resultsLimit": 1}

    def parse_item(self, item: Dict[str, Any]) -> MetricsResult:
        # Instagram does not expose share counts
        return MetricsResult.from_counts(
            views=item.get("videoViewCount") or item.get("videoPlayCount") or 0,
            likes=item.get("likesCount", 0),
            comments=item.get("commentsCount", 0),
            shares=0,
            title=(item.get("caption") or "")[:200] or None,
            published_at=item.get("timestamp") or None,
        )


class TikTokMetricsFetcher(ApifyMetricsFetcher):
    platform = "tiktok"
    actor_id_setting = "APIFY_TIKTOK_ACTOR_ID"

    def build_input(self, url: str) -> Dict[str, Any]:
        return {
            "postURLs": [url],
            "resultsPerPage": 1,
            "shouldDownloadVideos": False,
            "shouldDownloadCovers": False,
            "shouldDownloadSubtitles": False,
            "shouldDownloadSlideshowImages": False,
        }

    def parse_item(self, item: Dict[str, Any]) -> MetricsResult:
        return MetricsResult.from_counts(
            views=_nested(item, "playCount"),
            likes=_nested(item, "diggCount"),
            comments=_nested(item, "commentCount"),
            shares=_nested(item, "shareCount"),
            title=(item.get("text") or "")[:200] or None,
            published_at=item.get("createTimeISO") or None,
        )
