"""Models package."""

from .campaign_content import CampaignContent
from .content_metrics import ContentMetrics
from .analytics_job import AnalyticsJob
from .api_cache_entry import ApiCacheEntry
from .campaign_analytics import CampaignAnalytics
