"""Base metrics fetcher with the never-raise contract."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from config import AnalyticsConfigurationError, settings
from services.fetchers.types import MetricsResult

logger = logging.getLogger(__name__)


class BaseMetricsFetcher(ABC):
    """
    Fetches engagement metrics for one content URL from a third-party service.

    Subclasses implement `_fetch_raw`, which may raise anything. `fetch` bounds
    it with a timeout and turns every failure into a safe-default result.
    Configuration errors are the exception: they propagate to the caller.
    """

    platform: str

    def __init__(self, *, timeout_seconds: Optional[float] = None) -> None:
        self.timeout_seconds = (
            float(timeout_seconds)
            if timeout_seconds is not None
            else float(settings.ANALYTICS_FETCH_TIMEOUT_SECONDS)
        )

    @abstractmethod
    async def _fetch_raw(self, url: str) -> MetricsResult:
        raise NotImplementedError

    async def fetch(self, url: str) -> MetricsResult:
        try:
            result = await asyncio.wait_for(self._fetch_raw(url), timeout=self.timeout_seconds)
        except AnalyticsConfigurationError:
            raise
        except asyncio.TimeoutError:
            logger.warning("%s fetch timed out after %.1fs for %s", self.platform, self.timeout_seconds, url)
            return MetricsResult.failure(f"{self.platform} fetch timed out after {self.timeout_seconds:g}s")
        except Exception as exc:
            logger.warning("%s fetch failed for %s: %s", self.platform, url, exc)
            return MetricsResult.failure(str(exc) or exc.__class__.__name__)

        if not isinstance(result, MetricsResult):
            logger.warning("%s fetcher returned %r for %s", self.platform, type(result), url)
            return MetricsResult.failure("Invalid response format")
        return result
