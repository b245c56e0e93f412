"""Metrics fetcher contracts."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from config import AnalyticsConfigurationError


UNSUPPORTED_PLATFORM_ERROR = "unsupported platform"


class MetricsFetchError(RuntimeError):
    """Raised inside a fetcher when the external capability fails."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compute_engagement_rate(engagement: int, views: int) -> float:
    """Engagement as a percentage of views; 0 when there are no views."""
    if views <= 0:
        return 0.0
    return round((engagement / views) * 100, 2)


def _count(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class MetricsResult:
    views: int = 0
    engagement: int = 0
    rate: float = 0.0
    fetched_at: datetime = field(default_factory=utc_now)
    error: Optional[str] = None
    likes: int = 0
    comments: int = 0
    shares: int = 0
    title: Optional[str] = None
    published_at: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, message: str, *, fetched_at: Optional[datetime] = None) -> "MetricsResult":
        """Safe-default result: all counts zero, error always non-empty."""
        return cls(
            fetched_at=fetched_at or utc_now(),
            error=str(message or "").strip() or "Analytics unavailable",
        )

    @classmethod
    def from_counts(
        cls,
        *,
        views: Any,
        likes: Any = 0,
        comments: Any = 0,
        shares: Any = 0,
        engagement: Any = None,
        rate: Any = None,
        title: Optional[str] = None,
        published_at: Optional[str] = None,
    ) -> "MetricsResult":
        views_count = _count(views)
        likes_count = _count(likes)
        comments_count = _count(comments)
        shares_count = _count(shares)
        engagement_count = (
            _count(engagement) if engagement is not None else likes_count + comments_count + shares_count
        )
        if rate is None:
            resolved_rate = compute_engagement_rate(engagement_count, views_count)
        else:
            try:
                resolved_rate = max(float(rate), 0.0)
            except (TypeError, ValueError):
                resolved_rate = compute_engagement_rate(engagement_count, views_count)
        return cls(
            views=views_count,
            engagement=engagement_count,
            rate=resolved_rate,
            likes=likes_count,
            comments=comments_count,
            shares=shares_count,
            title=title,
            published_at=published_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["fetched_at"] = self.fetched_at.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "MetricsResult":
        fetched_raw = payload.get("fetched_at")
        fetched_at = datetime.fromisoformat(fetched_raw) if isinstance(fetched_raw, str) else utc_now()
        error = payload.get("error")
        if error:
            return cls.failure(error, fetched_at=fetched_at)
        return cls(
            views=_count(payload.get("views")),
            engagement=_count(payload.get("engagement")),
            rate=max(float(payload.get("rate") or 0.0), 0.0),
            fetched_at=fetched_at,
            likes=_count(payload.get("likes")),
            comments=_count(payload.get("comments")),
            shares=_count(payload.get("shares")),
            title=payload.get("title"),
            published_at=payload.get("published_at"),
        )


@dataclass(frozen=True)
class ItemMetrics:
    """One batch item: the URL, its platform tag and the fetched metrics."""

    url: str
    platform: str
    metrics: MetricsResult

    @property
    def views(self) -> int:
        return self.metrics.views

    @property
    def engagement(self) -> int:
        return self.metrics.engagement

    @property
    def rate(self) -> float:
        return self.metrics.rate

    @property
    def error(self) -> Optional[str]:
        return self.metrics.error

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "platform": self.platform, **self.metrics.to_dict()}


__all__ = [
    "AnalyticsConfigurationError",
    "ItemMetrics",
    "MetricsFetchError",
    "MetricsResult",
    "UNSUPPORTED_PLATFORM_ERROR",
    "compute_engagement_rate",
    "utc_now",
]
