"""Analytics processor trigger (Redis/RQ)."""

from __future__ import annotations

import uuid
from typing import Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from config import settings


ANALYTICS_QUEUE_NAME = "analytics_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_analytics_queue() -> Queue:
    """Return the configured analytics queue."""
    return Queue(
        name=ANALYTICS_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=900,
    )


def enqueue_analytics_processing(campaign_id: Optional[str] = None) -> Job:
    """Schedule one processor pass over pending analytics jobs."""
    queue = get_analytics_queue()
    suffix = campaign_id or "all"
    return queue.enqueue(
        "services.analytics_jobs.process_analytics_jobs",
        job_id=f"analytics:{suffix}:{uuid.uuid4().hex[:12]}",
        retry=Retry(max=3, interval=[15, 60, 180]),
        job_timeout=900,
        result_ttl=86400,
        failure_ttl=86400,
    )
