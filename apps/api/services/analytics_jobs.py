"""
Analytics job queue and processor.

Jobs move pending -> running -> completed | failed. Terminal states are never
left; a retry is a new job. The processor claims a job before doing any work
so a crash mid-fetch leaves an inspectable `running` row.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select

from config import settings
from database import async_session_maker
from models.analytics_job import AnalyticsJob
from services.analytics_batch import BatchAnalyticsAggregator, CampaignAnalyticsSnapshot
from services.analytics_store import AnalyticsStore
from services.fetchers.types import ItemMetrics, utc_now
from services.platforms import SUPPORTED_PLATFORMS
from services.response_cache import build_response_cache

logger = logging.getLogger(__name__)

JOB_PENDING = "pending"
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
TERMINAL_STATUSES = (JOB_COMPLETED, JOB_FAILED)
MAX_ERROR_LENGTH = 1000


class InvalidJobTransition(RuntimeError):
    """Raised when a job is moved to a status its current state does not allow."""


def normalize_platforms(platforms: Optional[Iterable[str]]) -> List[str]:
    if platforms is None:
        return list(SUPPORTED_PLATFORMS)
    normalized: List[str] = []
    for platform in platforms:
        value = str(platform or "").strip().lower()
        if value not in SUPPORTED_PLATFORMS:
            raise ValueError(f"Unsupported platform '{platform}'. Expected one of: {', '.join(SUPPORTED_PLATFORMS)}")
        if value not in normalized:
            normalized.append(value)
    if not normalized:
        raise ValueError("At least one platform is required")
    return normalized


class AnalyticsJobStore:
    """Durable job table with claim/transition operations."""

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_maker = session_maker or async_session_maker
        self._clock = clock or utc_now

    async def enqueue(self, campaign_id: str, platforms: Optional[Iterable[str]] = None) -> List[AnalyticsJob]:
        """Create one pending job per platform."""
        campaign_id = str(campaign_id or "").strip()
        if not campaign_id:
            raise ValueError("campaign_id is required")
        selected = normalize_platforms(platforms)
        now = self._clock()
        async with self._session_maker() as db:
            jobs = [
                AnalyticsJob(
                    id=str(uuid.uuid4()),
                    campaign_id=campaign_id,
                    platform=platform,
                    status=JOB_PENDING,
                    created_at=now,
                )
                for platform in selected
            ]
            db.add_all(jobs)
            await db.commit()
        logger.info("Created %d analytics jobs for campaign %s", len(jobs), campaign_id)
        return jobs

    async def get_job(self, job_id: str) -> Optional[AnalyticsJob]:
        async with self._session_maker() as db:
            result = await db.execute(select(AnalyticsJob).where(AnalyticsJob.id == job_id))
            return result.scalar_one_or_none()

    async def get_jobs(self, campaign_id: str) -> List[AnalyticsJob]:
        """All jobs of a campaign, newest first."""
        async with self._session_maker() as db:
            result = await db.execute(
                select(AnalyticsJob)
                .where(AnalyticsJob.campaign_id == campaign_id)
                .order_by(AnalyticsJob.created_at.desc(), AnalyticsJob.platform)
            )
            return list(result.scalars().all())

    async def latest_jobs(self, campaign_id: str) -> Dict[str, AnalyticsJob]:
        latest: Dict[str, AnalyticsJob] = {}
        for job in await self.get_jobs(campaign_id):
            latest.setdefault(job.platform, job)
        return latest

    async def list_pending(self, limit: int) -> List[AnalyticsJob]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(AnalyticsJob)
                .where(AnalyticsJob.status == JOB_PENDING)
                .order_by(AnalyticsJob.created_at, AnalyticsJob.id)
                .limit(max(int(limit), 1))
            )
            return list(result.scalars().all())

    async def claim(self, job_id: str) -> bool:
        """Move a pending job to running. False when another pass already claimed it."""
        async with self._session_maker() as db:
            result = await db.execute(
                update(AnalyticsJob)
                .where(AnalyticsJob.id == job_id, AnalyticsJob.status == JOB_PENDING)
                .values(status=JOB_RUNNING, started_at=self._clock())
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return int(result.rowcount or 0) == 1

    async def transition(self, job_id: str, status: str, error_message: Optional[str] = None) -> None:
        """Finish a running job. Terminal jobs are never changed."""
        if status not in TERMINAL_STATUSES:
            raise InvalidJobTransition(f"Cannot transition a running job to '{status}'")
        values = {"status": status, "completed_at": self._clock()}
        if status == JOB_FAILED:
            values["error_message"] = (str(error_message or "").strip() or "Analytics job failed")[:MAX_ERROR_LENGTH]
        async with self._session_maker() as db:
            result = await db.execute(
                update(AnalyticsJob)
                .where(AnalyticsJob.id == job_id, AnalyticsJob.status == JOB_RUNNING)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            if int(result.rowcount or 0) == 1:
                return
        job = await self.get_job(job_id)
        current = job.status if job else "missing"
        raise InvalidJobTransition(f"Job {job_id} is {current}; cannot move it to {status}")

    async def recover_stale_jobs(self, max_age_minutes: Optional[int] = None) -> int:
        """Fail jobs left in running longer than the staleness threshold."""
        minutes = max(int(max_age_minutes if max_age_minutes is not None else settings.ANALYTICS_JOB_STALE_MINUTES), 1)
        now = self._clock()
        cutoff = now - timedelta(minutes=minutes)
        async with self._session_maker() as db:
            result = await db.execute(
                update(AnalyticsJob)
                .where(AnalyticsJob.status == JOB_RUNNING, AnalyticsJob.started_at < cutoff)
                .values(
                    status=JOB_FAILED,
                    error_message="Analytics job was interrupted. Trigger a new refresh to retry.",
                    completed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            recovered = int(result.rowcount or 0)
        if recovered:
            logger.warning("Marked %d stale analytics jobs as failed", recovered)
        return recovered


async def _persist_items(
    store: AnalyticsStore,
    campaign_id: str,
    items: List[ItemMetrics],
) -> Dict[str, str]:
    """Upsert successful items; return the errors of the failed ones by URL."""
    errors: Dict[str, str] = {}
    for item in items:
        if item.error is None:
            await store.upsert_metrics(campaign_id, item)
        else:
            errors[item.url] = item.error
    return errors


async def refresh_campaign_analytics(
    campaign_id: str,
    *,
    store: AnalyticsStore,
    aggregator: BatchAnalyticsAggregator,
) -> CampaignAnalyticsSnapshot:
    """Interactive refresh: fetch every stored content URL, persist, recompute totals."""
    content = await store.list_campaign_content(campaign_id)
    items = await aggregator.fetch_batch([ref.url for ref in content])
    errors = await _persist_items(store, campaign_id, items)
    if errors:
        logger.info("Campaign %s refresh: %d of %d items failed", campaign_id, len(errors), len(items))
    return await store.recompute_snapshot(campaign_id, errors)


class AnalyticsJobProcessor:
    """Runs bounded passes over pending analytics jobs."""

    def __init__(
        self,
        jobs: AnalyticsJobStore,
        store: AnalyticsStore,
        aggregator: BatchAnalyticsAggregator,
        *,
        batch_size: Optional[int] = None,
        stale_minutes: Optional[int] = None,
    ) -> None:
        self.jobs = jobs
        self.store = store
        self.aggregator = aggregator
        self.batch_size = max(int(batch_size if batch_size is not None else settings.ANALYTICS_JOB_BATCH_SIZE), 1)
        self.stale_minutes = stale_minutes

    async def run_once(self) -> Dict[str, int]:
        """Process up to batch_size pending jobs. One job's failure never stops the pass."""
        try:
            await self.jobs.recover_stale_jobs(self.stale_minutes)
        except Exception as exc:
            logger.warning("Stale analytics job recovery skipped: %s", exc)

        pending = await self.jobs.list_pending(self.batch_size)
        summary = {"processed": 0, "completed": 0, "failed": 0, "skipped": 0, "total": len(pending)}
        for job in pending:
            try:
                outcome = await self.process_job(job)
            except Exception:
                logger.exception("Analytics job %s could not be finalized", job.id)
                outcome = JOB_FAILED
            if outcome is None:
                summary["skipped"] += 1
                continue
            summary["processed"] += 1
            summary[outcome] += 1

        await self._purge_cache()
        logger.info(
            "Analytics job pass: completed=%d failed=%d skipped=%d total=%d",
            summary["completed"],
            summary["failed"],
            summary["skipped"],
            summary["total"],
        )
        return summary

    async def process_job(self, job: AnalyticsJob) -> Optional[str]:
        """Claim, fetch, persist and finish one job. None when the job was not claimable."""
        if not await self.jobs.claim(job.id):
            logger.info("Analytics job %s already claimed; skipping", job.id)
            return None

        try:
            error_message = await self._execute(job)
        except Exception as exc:
            logger.error("Analytics job %s (%s/%s) failed: %s", job.id, job.campaign_id, job.platform, exc)
            await self.jobs.transition(job.id, JOB_FAILED, str(exc) or exc.__class__.__name__)
            return JOB_FAILED

        if error_message:
            logger.warning("Analytics job %s failed: %s", job.id, error_message)
            await self.jobs.transition(job.id, JOB_FAILED, error_message)
            return JOB_FAILED

        await self.jobs.transition(job.id, JOB_COMPLETED)
        logger.info("Completed analytics job %s for campaign %s (%s)", job.id, job.campaign_id, job.platform)
        return JOB_COMPLETED

    async def _execute(self, job: AnalyticsJob) -> Optional[str]:
        content = await self.store.list_campaign_content(job.campaign_id, platform=job.platform)
        if not content:
            return f"No {job.platform} content URLs found for campaign {job.campaign_id}"

        items = await self.aggregator.fetch_batch([ref.url for ref in content])
        errors = await _persist_items(self.store, job.campaign_id, items)
        await self.store.recompute_snapshot(job.campaign_id, errors)

        if len(errors) == len(items):
            return "; ".join(f"{url}: {message}" for url, message in errors.items())
        if errors:
            logger.warning(
                "Analytics job %s: %d of %d URLs failed and kept their previous metrics",
                job.id,
                len(errors),
                len(items),
            )
        return None

    async def _purge_cache(self) -> None:
        cache = self.aggregator.cache
        if cache is None:
            return
        try:
            purged = await cache.purge_expired()
            if purged:
                logger.info("Purged %d expired cache entries", purged)
        except Exception as exc:
            logger.warning("Cache purge skipped: %s", exc)


def build_job_processor(session_maker: Optional[async_sessionmaker] = None) -> AnalyticsJobProcessor:
    session_maker = session_maker or async_session_maker
    return AnalyticsJobProcessor(
        AnalyticsJobStore(session_maker),
        AnalyticsStore(session_maker),
        BatchAnalyticsAggregator(build_response_cache(session_maker)),
    )


async def process_analytics_jobs_async() -> Dict[str, int]:
    return await build_job_processor().run_once()


def process_analytics_jobs() -> Dict[str, int]:
    """RQ worker entrypoint for one analytics processor pass."""
    return asyncio.run(process_analytics_jobs_async())
