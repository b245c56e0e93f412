"""
Campaign Analytics Pipeline - FastAPI Backend
Main application entry point with health check and API routing.
"""

import asyncio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import settings
from database import engine, Base
import models  # noqa: F401
from routers import health, analytics
from services.analytics_jobs import AnalyticsJobStore, process_analytics_jobs_async


async def _periodic_analytics_processing() -> None:
    interval_minutes = max(int(settings.ANALYTICS_PROCESS_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            result = await process_analytics_jobs_async()
            total = int(result.get("total", 0) or 0)
            if total:
                print(
                    f"📊 Analytics job tick: completed={result.get('completed', 0)} "
                    f"failed={result.get('failed', 0)} total={total}"
                )
        except Exception as exc:
            print(f"⚠️ Analytics job tick failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Campaign Analytics API...")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    try:
        recovered = await AnalyticsJobStore().recover_stale_jobs()
        if recovered:
            print(f"♻️ Failed {recovered} stalled analytics jobs after startup.")
    except Exception as exc:
        print(f"⚠️ Stalled analytics job recovery skipped: {exc}")
    processing_task = None
    if int(settings.ANALYTICS_PROCESS_INTERVAL_MINUTES) > 0:
        processing_task = asyncio.create_task(_periodic_analytics_processing())
        print(
            "📅 Analytics job loop enabled "
            f"(every {int(settings.ANALYTICS_PROCESS_INTERVAL_MINUTES)} min)."
        )
    yield
    # Shutdown
    if processing_task is not None:
        processing_task.cancel()
        try:
            await processing_task
        except asyncio.CancelledError:
            pass
    print("👋 Shutting down API...")


app = FastAPI(
    title="Campaign Analytics API",
    description="Fetch, cache and aggregate engagement metrics for campaign content",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Campaign Analytics API",
        "version": "0.1.0",
        "status": "running"
    }
