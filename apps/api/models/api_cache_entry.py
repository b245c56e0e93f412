"""Cached third-party analytics responses."""

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func

from database import Base


class ApiCacheEntry(Base):
    """Response cache row keyed by fetch fingerprint."""

    __tablename__ = "api_cache"

    cache_key = Column(String, primary_key=True)
    platform = Column(String, nullable=False)
    response_data = Column(JSON, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
