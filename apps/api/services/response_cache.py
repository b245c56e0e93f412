"""TTL response cache for third-party analytics fetches."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select

from database import async_session_maker
from models.api_cache_entry import ApiCacheEntry
from services.fetchers.types import MetricsResult, utc_now
from services.upsert import upsert_statement

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ResponseCache(ABC):
    """
    Maps a fetch fingerprint to a previously fetched MetricsResult.

    An entry is usable while now < expires_at. `get` filters by expiry on its
    own; `purge_expired` only bounds storage.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or utc_now

    def now(self) -> datetime:
        return as_utc(self._clock())

    @abstractmethod
    async def get(self, key: str) -> Optional[MetricsResult]:
        raise NotImplementedError

    @abstractmethod
    async def put(self, key: str, value: MetricsResult, ttl_seconds: float) -> None:
        raise NotImplementedError

    @abstractmethod
    async def purge_expired(self) -> int:
        raise NotImplementedError


class InMemoryResponseCache(ResponseCache):
    """Process-local cache guarded by an asyncio lock."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._entries: Dict[str, Tuple[MetricsResult, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[MetricsResult]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self.now() >= expires_at:
                return None
            return value

    async def put(self, key: str, value: MetricsResult, ttl_seconds: float) -> None:
        expires_at = self.now() + timedelta(seconds=float(ttl_seconds))
        async with self._lock:
            self._entries[key] = (value, expires_at)

    async def purge_expired(self) -> int:
        now = self.now()
        async with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class SqlResponseCache(ResponseCache):
    """Cache persisted in the api_cache table; one upsert per write."""

    def __init__(self, session_maker: async_sessionmaker, clock: Optional[Clock] = None) -> None:
        super().__init__(clock)
        self._session_maker = session_maker

    async def get(self, key: str) -> Optional[MetricsResult]:
        async with self._session_maker() as db:
            result = await db.execute(
                select(ApiCacheEntry).where(
                    ApiCacheEntry.cache_key == key,
                    ApiCacheEntry.expires_at > self.now(),
                )
            )
            entry = result.scalar_one_or_none()
            if entry is None:
                return None
            if not isinstance(entry.response_data, dict):
                logger.warning("Ignoring malformed cache entry %s", key)
                return None
            return MetricsResult.from_dict(entry.response_data)

    async def put(self, key: str, value: MetricsResult, ttl_seconds: float) -> None:
        platform = key.split(":", 1)[0]
        expires_at = self.now() + timedelta(seconds=float(ttl_seconds))
        async with self._session_maker() as db:
            await db.execute(
                upsert_statement(
                    db,
                    ApiCacheEntry,
                    {
                        "cache_key": key,
                        "platform": platform,
                        "response_data": value.to_dict(),
                        "expires_at": expires_at,
                    },
                    index_elements=["cache_key"],
                    update_columns=["platform", "response_data", "expires_at"],
                )
            )
            await db.commit()

    async def purge_expired(self) -> int:
        async with self._session_maker() as db:
            result = await db.execute(
                delete(ApiCacheEntry).where(ApiCacheEntry.expires_at <= self.now())
            )
            await db.commit()
            return int(result.rowcount or 0)


def build_response_cache(session_maker: Optional[async_sessionmaker] = None) -> ResponseCache:
    return SqlResponseCache(session_maker or async_session_maker)

