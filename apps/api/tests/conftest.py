import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base
import models  # noqa: F401
from services.fetchers.base import BaseMetricsFetcher
from services.fetchers.types import MetricsResult


class FakeClock:
    """Controllable UTC clock for cache expiry and job staleness tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeFetcher(BaseMetricsFetcher):
    """
    Returns canned results per URL and records every call.

    A URL mapped to an Exception makes the fetch raise it; unmapped URLs
    return `default`.
    """

    def __init__(
        self,
        platform: str,
        results: Optional[Dict[str, object]] = None,
        *,
        default: Optional[MetricsResult] = None,
        delay: float = 0.0,
        timeout_seconds: float = 5.0,
    ):
        super().__init__(timeout_seconds=timeout_seconds)
        self.platform = platform
        self.results = dict(results or {})
        self.default = default or MetricsResult.from_counts(views=100, likes=5, comments=5)
        self.delay = delay
        self.calls: List[str] = []
        self.active = 0
        self.max_active = 0

    async def _fetch_raw(self, url: str) -> MetricsResult:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self.results.get(url, self.default)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.active -= 1


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "analytics.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker

    await engine.dispose()
