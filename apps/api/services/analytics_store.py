"""Persistence for campaign content references, metrics rows and snapshots."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select

from database import async_session_maker
from models.campaign_analytics import CampaignAnalytics
from models.campaign_content import CampaignContent
from models.content_metrics import ContentMetrics
from services.analytics_batch import CampaignAnalyticsSnapshot, aggregate
from services.fetchers.types import ItemMetrics, MetricsResult, utc_now
from services.platforms import resolve_platform
from services.response_cache import as_utc
from services.upsert import upsert_statement

logger = logging.getLogger(__name__)

NOT_FETCHED_ERROR = "metrics not fetched yet"


def _item_from_row(row: ContentMetrics) -> ItemMetrics:
    return ItemMetrics(
        url=row.url,
        platform=row.platform,
        metrics=MetricsResult(
            views=int(row.views or 0),
            engagement=int(row.engagement or 0),
            rate=float(row.engagement_rate or 0.0),
            fetched_at=as_utc(row.fetched_at) if row.fetched_at else utc_now(),
            likes=int(row.likes or 0),
            comments=int(row.comments or 0),
            shares=int(row.shares or 0),
        ),
    )


def _item_from_payload(payload: Dict) -> ItemMetrics:
    return ItemMetrics(
        url=str(payload.get("url") or ""),
        platform=str(payload.get("platform") or ""),
        metrics=MetricsResult.from_dict(payload),
    )


class AnalyticsStore:
    """
    Metrics rows keyed by (campaign_id, platform, url) plus the derived
    campaign snapshot. Each operation runs in its own session.
    """

    def __init__(self, session_maker: Optional[async_sessionmaker] = None) -> None:
        self._session_maker = session_maker or async_session_maker

    async def set_campaign_content(self, campaign_id: str, urls: Sequence[str]) -> List[CampaignContent]:
        """Replace a campaign's content URLs. Metrics of removed URLs are dropped."""
        wanted: Dict[str, str] = {}
        for url in urls:
            cleaned = str(url or "").strip()
            if cleaned and cleaned not in wanted:
                wanted[cleaned] = resolve_platform(cleaned)

        async with self._session_maker() as db:
            result = await db.execute(select(CampaignContent).where(CampaignContent.campaign_id == campaign_id))
            existing = {row.url: row for row in result.scalars().all()}

            removed = [url for url in existing if url not in wanted]
            if removed:
                await db.execute(
                    delete(CampaignContent).where(
                        CampaignContent.campaign_id == campaign_id,
                        CampaignContent.url.in_(removed),
                    )
                )
                await db.execute(
                    delete(ContentMetrics).where(
                        ContentMetrics.campaign_id == campaign_id,
                        ContentMetrics.url.in_(removed),
                    )
                )
            for url, platform in wanted.items():
                if url not in existing:
                    db.add(CampaignContent(campaign_id=campaign_id, url=url, platform=platform))
            await db.commit()

        return await self.list_campaign_content(campaign_id)

    async def list_campaign_content(
        self,
        campaign_id: str,
        platform: Optional[str] = None,
    ) -> List[CampaignContent]:
        async with self._session_maker() as db:
            query = select(CampaignContent).where(CampaignContent.campaign_id == campaign_id)
            if platform is not None:
                query = query.where(CampaignContent.platform == platform)
            result = await db.execute(query.order_by(CampaignContent.created_at, CampaignContent.url))
            return list(result.scalars().all())

    async def upsert_metrics(self, campaign_id: str, item: ItemMetrics) -> None:
        """Insert or overwrite the metrics row for (campaign_id, platform, url)."""
        if item.error is not None:
            raise ValueError("Refusing to persist a failed metrics result")
        metrics = item.metrics
        now = utc_now()
        async with self._session_maker() as db:
            await db.execute(
                upsert_statement(
                    db,
                    ContentMetrics,
                    {
                        "campaign_id": campaign_id,
                        "platform": item.platform,
                        "url": item.url,
                        "views": metrics.views,
                        "engagement": metrics.engagement,
                        "likes": metrics.likes,
                        "comments": metrics.comments,
                        "shares": metrics.shares,
                        "engagement_rate": metrics.rate,
                        "fetched_at": metrics.fetched_at,
                        "updated_at": now,
                    },
                    index_elements=["campaign_id", "platform", "url"],
                    update_columns=[
                        "views",
                        "engagement",
                        "likes",
                        "comments",
                        "shares",
                        "engagement_rate",
                        "fetched_at",
                        "updated_at",
                    ],
                )
            )
            await db.commit()

    async def list_metrics(self, campaign_id: str) -> List[ContentMetrics]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(ContentMetrics)
                .where(ContentMetrics.campaign_id == campaign_id)
                .order_by(ContentMetrics.platform, ContentMetrics.url)
            )
            return list(result.scalars().all())

    async def recompute_snapshot(
        self,
        campaign_id: str,
        errors: Optional[Dict[str, str]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> CampaignAnalyticsSnapshot:
        """
        Rebuild the campaign snapshot from stored metrics rows and persist it.

        Content URLs without a stored row appear as failed items, carrying the
        latest fetch error when one is known.
        """
        errors = errors or {}
        rows = await self.list_metrics(campaign_id)
        content = await self.list_campaign_content(campaign_id)

        by_key: Dict[Tuple[str, str], ItemMetrics] = {(row.platform, row.url): _item_from_row(row) for row in rows}
        items: List[ItemMetrics] = []
        for ref in content:
            item = by_key.pop((ref.platform, ref.url), None)
            if item is None:
                item = ItemMetrics(
                    url=ref.url,
                    platform=ref.platform,
                    metrics=MetricsResult.failure(errors.get(ref.url) or NOT_FETCHED_ERROR),
                )
            items.append(item)
        # Rows without a content reference still count toward the totals
        items.extend(by_key.values())

        snapshot = aggregate(items, campaign_id, now=now)
        await self.save_snapshot(snapshot)
        return snapshot

    async def save_snapshot(self, snapshot: CampaignAnalyticsSnapshot) -> None:
        async with self._session_maker() as db:
            await db.execute(
                upsert_statement(
                    db,
                    CampaignAnalytics,
                    {
                        "campaign_id": snapshot.campaign_id,
                        "total_views": snapshot.total_views,
                        "total_engagement": snapshot.total_engagement,
                        "average_rate": snapshot.average_rate,
                        "per_item_json": [item.to_dict() for item in snapshot.per_item],
                        "last_updated": snapshot.last_updated,
                    },
                    index_elements=["campaign_id"],
                    update_columns=[
                        "total_views",
                        "total_engagement",
                        "average_rate",
                        "per_item_json",
                        "last_updated",
                    ],
                )
            )
            await db.commit()

    async def get_snapshot(self, campaign_id: str) -> Optional[CampaignAnalyticsSnapshot]:
        async with self._session_maker() as db:
            result = await db.execute(select(CampaignAnalytics).where(CampaignAnalytics.campaign_id == campaign_id))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            per_item = row.per_item_json if isinstance(row.per_item_json, list) else []
            return CampaignAnalyticsSnapshot(
                campaign_id=row.campaign_id,
                total_views=int(row.total_views or 0),
                total_engagement=int(row.total_engagement or 0),
                average_rate=float(row.average_rate or 0.0),
                per_item=[_item_from_payload(payload) for payload in per_item if isinstance(payload, dict)],
                last_updated=as_utc(row.last_updated),
            )
