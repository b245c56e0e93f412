"""Campaign-level analytics snapshot model."""

from sqlalchemy import Column, String, DateTime, Integer, Float, JSON

from database import Base


class CampaignAnalytics(Base):
    """Totals derived from content_metrics; recomputed on every refresh."""

    __tablename__ = "campaign_analytics"

    campaign_id = Column(String, primary_key=True)
    total_views = Column(Integer, nullable=False, default=0)
    total_engagement = Column(Integer, nullable=False, default=0)
    average_rate = Column(Float, nullable=False, default=0.0)
    per_item_json = Column(JSON, nullable=False, default=list)
    last_updated = Column(DateTime(timezone=True), nullable=False)
