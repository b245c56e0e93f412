"""Campaign analytics router: batch fetch, content, snapshots and jobs."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import async_sessionmaker

from config import AnalyticsConfigurationError
from database import get_session_maker
from models.analytics_job import AnalyticsJob
from services.analytics_batch import BatchAnalyticsAggregator, CampaignAnalyticsSnapshot
from services.analytics_jobs import (
    AnalyticsJobProcessor,
    AnalyticsJobStore,
    refresh_campaign_analytics,
)
from services.analytics_queue import enqueue_analytics_processing
from services.analytics_store import AnalyticsStore
from services.response_cache import build_response_cache

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_BATCH_URLS = 200


def _validate_http_urls(urls: List[str]) -> List[str]:
    cleaned = []
    for url in urls:
        value = str(url or "").strip()
        if not value.startswith("http://") and not value.startswith("https://"):
            raise ValueError(f"'{value}' must be an absolute http(s) URL")
        cleaned.append(value)
    return cleaned


class BatchAnalyticsRequest(BaseModel):
    urls: List[str] = Field(min_length=1, max_length=MAX_BATCH_URLS)


class CampaignContentRequest(BaseModel):
    urls: List[str] = Field(default_factory=list, max_length=MAX_BATCH_URLS)

    @field_validator("urls")
    @classmethod
    def _absolute_urls(cls, urls: List[str]) -> List[str]:
        return _validate_http_urls(urls)


class EnqueueJobsRequest(BaseModel):
    platforms: Optional[List[Literal["youtube", "instagram", "tiktok"]]] = None


class ContentReferenceResponse(BaseModel):
    url: str
    platform: str


class ItemMetricsResponse(BaseModel):
    url: str
    platform: str
    views: int
    engagement: int
    rate: float
    likes: int = 0
    comments: int = 0
    shares: int = 0
    fetched_at: Optional[str] = None
    error: Optional[str] = None


class SnapshotResponse(BaseModel):
    campaign_id: Optional[str] = None
    total_views: int
    total_engagement: int
    average_rate: float
    succeeded_count: int
    failed_count: int
    per_item: List[ItemMetricsResponse]
    last_updated: str


class AnalyticsJobResponse(BaseModel):
    job_id: str
    campaign_id: str
    platform: str
    status: str
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None


class EnqueueJobsResponse(BaseModel):
    jobs_created: int
    jobs: List[AnalyticsJobResponse]
    processor_triggered: bool


def get_analytics_store(session_maker: async_sessionmaker = Depends(get_session_maker)) -> AnalyticsStore:
    return AnalyticsStore(session_maker)


def get_job_store(session_maker: async_sessionmaker = Depends(get_session_maker)) -> AnalyticsJobStore:
    return AnalyticsJobStore(session_maker)


def get_aggregator(session_maker: async_sessionmaker = Depends(get_session_maker)) -> BatchAnalyticsAggregator:
    return BatchAnalyticsAggregator(build_response_cache(session_maker))


def _serialize_snapshot(snapshot: CampaignAnalyticsSnapshot) -> SnapshotResponse:
    return SnapshotResponse(
        campaign_id=snapshot.campaign_id,
        total_views=snapshot.total_views,
        total_engagement=snapshot.total_engagement,
        average_rate=snapshot.average_rate,
        succeeded_count=snapshot.succeeded_count,
        failed_count=snapshot.failed_count,
        per_item=[
            ItemMetricsResponse(
                url=item.url,
                platform=item.platform,
                views=item.views,
                engagement=item.engagement,
                rate=item.rate,
                likes=item.metrics.likes,
                comments=item.metrics.comments,
                shares=item.metrics.shares,
                fetched_at=item.metrics.fetched_at.isoformat(),
                error=item.error,
            )
            for item in snapshot.per_item
        ],
        last_updated=snapshot.last_updated.isoformat(),
    )


def _serialize_job(job: AnalyticsJob) -> AnalyticsJobResponse:
    return AnalyticsJobResponse(
        job_id=job.id,
        campaign_id=job.campaign_id,
        platform=job.platform,
        status=job.status,
        error_message=job.error_message,
        created_at=job.created_at.isoformat() if job.created_at else None,
        started_at=job.started_at.isoformat() if job.started_at else None,
        completed_at=job.completed_at.isoformat() if job.completed_at else None,
    )


def _configuration_unavailable(exc: AnalyticsConfigurationError) -> HTTPException:
    return HTTPException(status_code=503, detail=f"Analytics provider not configured: {exc}")


@router.post("/batch", response_model=SnapshotResponse)
async def fetch_batch_analytics(
    request: BatchAnalyticsRequest,
    aggregator: BatchAnalyticsAggregator = Depends(get_aggregator),
):
    """Fetch metrics for a list of URLs and return per-item results with totals."""
    try:
        items = await aggregator.fetch_batch(request.urls)
    except AnalyticsConfigurationError as exc:
        raise _configuration_unavailable(exc) from exc
    return _serialize_snapshot(aggregator.aggregate(items))


@router.put("/campaigns/{campaign_id}/content", response_model=List[ContentReferenceResponse])
async def set_campaign_content(
    campaign_id: str,
    request: CampaignContentRequest,
    store: AnalyticsStore = Depends(get_analytics_store),
):
    """Replace the content URLs tracked for a campaign."""
    rows = await store.set_campaign_content(campaign_id, request.urls)
    return [ContentReferenceResponse(url=row.url, platform=row.platform) for row in rows]


@router.get("/campaigns/{campaign_id}/content", response_model=List[ContentReferenceResponse])
async def get_campaign_content(
    campaign_id: str,
    store: AnalyticsStore = Depends(get_analytics_store),
):
    rows = await store.list_campaign_content(campaign_id)
    return [ContentReferenceResponse(url=row.url, platform=row.platform) for row in rows]


@router.post("/campaigns/{campaign_id}/refresh", response_model=SnapshotResponse)
async def refresh_campaign(
    campaign_id: str,
    store: AnalyticsStore = Depends(get_analytics_store),
    aggregator: BatchAnalyticsAggregator = Depends(get_aggregator),
):
    """Fetch all campaign content now, persist the metrics and return fresh totals."""
    try:
        snapshot = await refresh_campaign_analytics(campaign_id, store=store, aggregator=aggregator)
    except AnalyticsConfigurationError as exc:
        raise _configuration_unavailable(exc) from exc
    return _serialize_snapshot(snapshot)


@router.get("/campaigns/{campaign_id}", response_model=SnapshotResponse)
async def get_campaign_snapshot(
    campaign_id: str,
    store: AnalyticsStore = Depends(get_analytics_store),
):
    snapshot = await store.get_snapshot(campaign_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Campaign analytics have not been computed yet")
    return _serialize_snapshot(snapshot)


@router.post("/campaigns/{campaign_id}/jobs", response_model=EnqueueJobsResponse)
async def enqueue_campaign_jobs(
    campaign_id: str,
    request: Optional[EnqueueJobsRequest] = None,
    jobs_store: AnalyticsJobStore = Depends(get_job_store),
):
    """Create one pending analytics job per platform and trigger the processor."""
    platforms = request.platforms if request else None
    try:
        jobs = await jobs_store.enqueue(campaign_id, platforms)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    processor_triggered = False
    try:
        enqueue_analytics_processing(campaign_id)
        processor_triggered = True
    except Exception as exc:
        # Jobs stay pending for the periodic processor loop
        logger.warning("Analytics processor trigger failed for campaign %s: %s", campaign_id, exc)

    return EnqueueJobsResponse(
        jobs_created=len(jobs),
        jobs=[_serialize_job(job) for job in jobs],
        processor_triggered=processor_triggered,
    )


@router.get("/campaigns/{campaign_id}/jobs", response_model=List[AnalyticsJobResponse])
async def list_campaign_jobs(
    campaign_id: str,
    jobs_store: AnalyticsJobStore = Depends(get_job_store),
):
    jobs = await jobs_store.get_jobs(campaign_id)
    return [_serialize_job(job) for job in jobs]


@router.post("/jobs/process")
async def process_pending_jobs(
    jobs_store: AnalyticsJobStore = Depends(get_job_store),
    store: AnalyticsStore = Depends(get_analytics_store),
    aggregator: BatchAnalyticsAggregator = Depends(get_aggregator),
) -> Dict[str, Any]:
    """Run one processor pass inline."""
    processor = AnalyticsJobProcessor(jobs_store, store, aggregator)
    return await processor.run_once()
