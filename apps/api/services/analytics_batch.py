"""Batch analytics fetching and campaign-level aggregation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from config import AnalyticsConfigurationError, settings
from services.fetchers import (
    BaseMetricsFetcher,
    ItemMetrics,
    MetricsResult,
    UNSUPPORTED_PLATFORM_ERROR,
    default_fetchers,
)
from services.fetchers.types import utc_now
from services.platforms import UNKNOWN_PLATFORM, fingerprint, resolve_platform
from services.response_cache import ResponseCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CampaignAnalyticsSnapshot:
    campaign_id: Optional[str]
    total_views: int
    total_engagement: int
    average_rate: float
    per_item: List[ItemMetrics] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utc_now)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for item in self.per_item if item.error is None)

    @property
    def failed_count(self) -> int:
        return len(self.per_item) - self.succeeded_count


def aggregate(
    items: Sequence[ItemMetrics],
    campaign_id: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> CampaignAnalyticsSnapshot:
    """
    Reduce per-item metrics to campaign totals.

    Failed items stay in per_item and add their zeros to the sums. The average
    rate only counts items without an error and is 0 when none succeeded.
    """
    items = list(items)
    succeeded_rates = [item.rate for item in items if item.error is None]
    average_rate = round(sum(succeeded_rates) / len(succeeded_rates), 2) if succeeded_rates else 0.0
    return CampaignAnalyticsSnapshot(
        campaign_id=campaign_id,
        total_views=sum(item.views for item in items),
        total_engagement=sum(item.engagement for item in items),
        average_rate=average_rate,
        per_item=items,
        last_updated=now or utc_now(),
    )


class BatchAnalyticsAggregator:
    """
    Fans metrics fetches out over a set of URLs.

    Every input URL yields exactly one ItemMetrics, in input order. A single
    URL's failure is reported on that item and never cancels the batch. Only
    successful results are cached, so a transient failure is retried on the
    next call.
    """

    def __init__(
        self,
        cache: Optional[ResponseCache] = None,
        fetchers: Optional[Dict[str, BaseMetricsFetcher]] = None,
        *,
        ttl_seconds: Optional[float] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.cache = cache
        self.fetchers = fetchers if fetchers is not None else default_fetchers()
        self.ttl_seconds = float(
            ttl_seconds if ttl_seconds is not None else settings.ANALYTICS_CACHE_TTL_SECONDS
        )
        limit = int(max_concurrency if max_concurrency is not None else settings.ANALYTICS_MAX_CONCURRENCY)
        self._semaphore = asyncio.Semaphore(limit) if limit > 0 else None
        self._inflight: Dict[str, "asyncio.Future[MetricsResult]"] = {}

    async def fetch_batch(self, urls: Iterable[str]) -> List[ItemMetrics]:
        urls = [url if isinstance(url, str) else str(url or "") for url in urls]
        results = await asyncio.gather(*(self.fetch_one(url) for url in urls), return_exceptions=True)
        items: List[ItemMetrics] = []
        for url, result in zip(urls, results):
            if isinstance(result, AnalyticsConfigurationError):
                raise result
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("Metrics fetch for %s failed outside the fetcher: %s", url, result)
                result = ItemMetrics(
                    url=url,
                    platform=resolve_platform(url),
                    metrics=MetricsResult.failure(str(result) or result.__class__.__name__),
                )
            items.append(result)
        return items

    async def fetch_one(self, url: str) -> ItemMetrics:
        url_text = url if isinstance(url, str) else str(url or "")
        platform = resolve_platform(url_text)
        fetcher = self.fetchers.get(platform) if platform != UNKNOWN_PLATFORM else None
        if fetcher is None:
            return ItemMetrics(url=url_text, platform=platform, metrics=MetricsResult.failure(UNSUPPORTED_PLATFORM_ERROR))

        try:
            key = fingerprint(platform, url_text)
        except ValueError as exc:
            return ItemMetrics(url=url_text, platform=platform, metrics=MetricsResult.failure(f"Invalid URL: {exc}"))
        cached = await self._cache_get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return ItemMetrics(url=url_text, platform=platform, metrics=cached)

        # Identical fingerprints in flight share one external call
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_cache(fetcher, url_text, key))
            self._inflight[key] = task
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        metrics = await asyncio.shield(task)
        return ItemMetrics(url=url_text, platform=platform, metrics=metrics)

    def aggregate(self, items: Sequence[ItemMetrics], campaign_id: Optional[str] = None) -> CampaignAnalyticsSnapshot:
        return aggregate(items, campaign_id)

    def _release(self, key: str, done: "asyncio.Future[MetricsResult]") -> None:
        if self._inflight.get(key) is done:
            del self._inflight[key]

    async def _fetch_and_cache(self, fetcher: BaseMetricsFetcher, url: str, key: str) -> MetricsResult:
        if self._semaphore is None:
            result = await fetcher.fetch(url)
        else:
            async with self._semaphore:
                result = await fetcher.fetch(url)
        if result.ok:
            await self._cache_put(key, result)
        return result

    async def _cache_get(self, key: str) -> Optional[MetricsResult]:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except Exception as exc:
            logger.warning("Response cache read failed for %s: %s", key, exc)
            return None

    async def _cache_put(self, key: str, value: MetricsResult) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.put(key, value, self.ttl_seconds)
        except Exception as exc:
            logger.warning("Response cache write failed for %s: %s", key, exc)
