import pytest
from sqlalchemy.future import select

from models.api_cache_entry import ApiCacheEntry
from services.fetchers.types import MetricsResult
from services.response_cache import InMemoryResponseCache, SqlResponseCache
from tests.conftest import FakeClock


KEY = "youtube:https://youtube.com/watch?v=dQw4w9WgXcQ"


def _result(views=1000):
    return MetricsResult.from_counts(views=views, likes=40, comments=10)


@pytest.mark.asyncio
async def test_in_memory_cache_expires_at_ttl_boundary():
    clock = FakeClock()
    cache = InMemoryResponseCache(clock)

    await cache.put(KEY, _result(), ttl_seconds=3600)
    clock.advance(seconds=3599)
    assert (await cache.get(KEY)).views == 1000

    clock.advance(seconds=1)
    assert await cache.get(KEY) is None


@pytest.mark.asyncio
async def test_in_memory_cache_purge_only_drops_expired_entries():
    clock = FakeClock()
    cache = InMemoryResponseCache(clock)
    await cache.put("tiktok:a", _result(), ttl_seconds=60)
    await cache.put("tiktok:b", _result(), ttl_seconds=600)

    clock.advance(seconds=120)
    purged = await cache.purge_expired()

    assert purged == 1
    assert len(cache) == 1
    assert await cache.get("tiktok:b") is not None


@pytest.mark.asyncio
async def test_sql_cache_round_trips_and_expires(session_maker):
    clock = FakeClock()
    cache = SqlResponseCache(session_maker, clock)

    await cache.put(KEY, _result(), ttl_seconds=3600)
    cached = await cache.get(KEY)

    assert cached is not None
    assert cached.views == 1000
    assert cached.engagement == 50
    assert cached.rate == 5.0

    clock.advance(hours=1)
    assert await cache.get(KEY) is None


@pytest.mark.asyncio
async def test_sql_cache_put_overwrites_existing_entry(session_maker):
    clock = FakeClock()
    cache = SqlResponseCache(session_maker, clock)

    await cache.put(KEY, _result(views=1000), ttl_seconds=60)
    await cache.put(KEY, _result(views=2500), ttl_seconds=3600)

    async with session_maker() as db:
        rows = (await db.execute(select(ApiCacheEntry))).scalars().all()
    assert len(rows) == 1
    assert rows[0].platform == "youtube"

    clock.advance(minutes=30)
    assert (await cache.get(KEY)).views == 2500


@pytest.mark.asyncio
async def test_sql_cache_purge_expired(session_maker):
    clock = FakeClock()
    cache = SqlResponseCache(session_maker, clock)
    await cache.put("instagram:a", _result(), ttl_seconds=60)
    await cache.put("instagram:b", _result(), ttl_seconds=3600)

    clock.advance(minutes=5)
    purged = await cache.purge_expired()

    assert purged == 1
    async with session_maker() as db:
        keys = [row.cache_key for row in (await db.execute(select(ApiCacheEntry))).scalars().all()]
    assert keys == ["instagram:b"]
