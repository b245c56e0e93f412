"""Latest fetched metrics for one campaign content URL."""

from sqlalchemy import Column, String, DateTime, Integer, Float, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from database import Base


class ContentMetrics(Base):
    """Metrics row keyed by (campaign_id, platform, url); upserted on every fetch."""

    __tablename__ = "content_metrics"
    __table_args__ = (
        UniqueConstraint("campaign_id", "platform", "url", name="uq_content_metrics_key"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False)
    url = Column(String, nullable=False)
    views = Column(Integer, nullable=False, default=0)
    engagement = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    comments = Column(Integer, nullable=False, default=0)
    shares = Column(Integer, nullable=False, default=0)
    engagement_rate = Column(Float, nullable=False, default=0.0)
    fetched_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
