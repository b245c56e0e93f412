"""Campaign content reference model."""

from sqlalchemy import Column, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
import uuid

from database import Base


class CampaignContent(Base):
    """A content URL attached to a campaign, tagged with its platform."""

    __tablename__ = "campaign_content"
    __table_args__ = (
        UniqueConstraint("campaign_id", "url", name="uq_campaign_content_campaign_url"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(String, nullable=False, index=True)
    url = Column(String, nullable=False)
    platform = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
