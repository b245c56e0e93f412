"""YouTube metrics fetcher backed by the YouTube Data API."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from config import require_youtube_api_key
from ingestion.youtube import YouTubeClient, create_youtube_client_with_api_key
from services.fetchers.base import BaseMetricsFetcher
from services.fetchers.types import MetricsFetchError, MetricsResult
from services.platforms import extract_youtube_video_id


def _default_client_factory() -> YouTubeClient:
    return create_youtube_client_with_api_key(require_youtube_api_key())


class YouTubeMetricsFetcher(BaseMetricsFetcher):
    platform = "youtube"

    def __init__(
        self,
        client_factory: Callable[[], YouTubeClient] = _default_client_factory,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        self._client_factory = client_factory
        self._client: Optional[YouTubeClient] = None

    def _get_client(self) -> YouTubeClient:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    async def _fetch_raw(self, url: str) -> MetricsResult:
        client = self._get_client()
        video_id = extract_youtube_video_id(url)
        if not video_id:
            raise MetricsFetchError("Invalid YouTube URL")

        # googleapiclient is blocking
        video = await asyncio.to_thread(client.get_video_statistics, video_id)
        if not video:
            raise MetricsFetchError("Video not found on YouTube")

        likes = video.get("like_count", 0)
        comments = video.get("comment_count", 0)
        return MetricsResult.from_counts(
            views=video.get("view_count", 0),
            likes=likes,
            comments=comments,
            engagement=int(likes or 0) + int(comments or 0),
            title=video.get("title") or None,
            published_at=video.get("published_at") or None,
        )
