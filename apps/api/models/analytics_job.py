"""Analytics fetch job model."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
import uuid

from database import Base


class AnalyticsJob(Base):
    """Queued metrics refresh for one (campaign, platform) pair."""

    __tablename__ = "analytics_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    error_message = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
