"""Per-platform metrics fetchers."""

from services.fetchers.base import BaseMetricsFetcher
from services.fetchers.registry import default_fetchers, get_metrics_fetcher
from services.fetchers.types import (
    AnalyticsConfigurationError,
    ItemMetrics,
    MetricsFetchError,
    MetricsResult,
    UNSUPPORTED_PLATFORM_ERROR,
    compute_engagement_rate,
)

__all__ = [
    "AnalyticsConfigurationError",
    "BaseMetricsFetcher",
    "ItemMetrics",
    "MetricsFetchError",
    "MetricsResult",
    "UNSUPPORTED_PLATFORM_ERROR",
    "compute_engagement_rate",
    "default_fetchers",
    "get_metrics_fetcher",
]
