"""create campaign analytics schema

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "campaign_content",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("campaign_id", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "url", name="uq_campaign_content_campaign_url"),
    )
    op.create_index(op.f("ix_campaign_content_campaign_id"), "campaign_content", ["campaign_id"], unique=False)
    op.create_index(op.f("ix_campaign_content_platform"), "campaign_content", ["platform"], unique=False)

    op.create_table(
        "content_metrics",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("campaign_id", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False),
        sa.Column("engagement", sa.Integer(), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Integer(), nullable=False),
        sa.Column("shares", sa.Integer(), nullable=False),
        sa.Column("engagement_rate", sa.Float(), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("campaign_id", "platform", "url", name="uq_content_metrics_key"),
    )
    op.create_index(op.f("ix_content_metrics_campaign_id"), "content_metrics", ["campaign_id"], unique=False)

    op.create_table(
        "analytics_jobs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("campaign_id", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_analytics_jobs_campaign_id"), "analytics_jobs", ["campaign_id"], unique=False)
    op.create_index(op.f("ix_analytics_jobs_platform"), "analytics_jobs", ["platform"], unique=False)
    op.create_index(op.f("ix_analytics_jobs_status"), "analytics_jobs", ["status"], unique=False)

    op.create_table(
        "api_cache",
        sa.Column("cache_key", sa.String(), nullable=False),
        sa.Column("platform", sa.String(), nullable=False),
        sa.Column("response_data", sa.JSON(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("cache_key"),
    )
    op.create_index(op.f("ix_api_cache_expires_at"), "api_cache", ["expires_at"], unique=False)

    op.create_table(
        "campaign_analytics",
        sa.Column("campaign_id", sa.String(), nullable=False),
        sa.Column("total_views", sa.Integer(), nullable=False),
        sa.Column("total_engagement", sa.Integer(), nullable=False),
        sa.Column("average_rate", sa.Float(), nullable=False),
        sa.Column("per_item_json", sa.JSON(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("campaign_id"),
    )


def downgrade() -> None:
    op.drop_table("campaign_analytics")
    op.drop_index(op.f("ix_api_cache_expires_at"), table_name="api_cache")
    op.drop_table("api_cache")
    op.drop_index(op.f("ix_analytics_jobs_status"), table_name="analytics_jobs")
    op.drop_index(op.f("ix_analytics_jobs_platform"), table_name="analytics_jobs")
    op.drop_index(op.f("ix_analytics_jobs_campaign_id"), table_name="analytics_jobs")
    op.drop_table("analytics_jobs")
    op.drop_index(op.f("ix_content_metrics_campaign_id"), table_name="content_metrics")
    op.drop_table("content_metrics")
    op.drop_index(op.f("ix_campaign_content_platform"), table_name="campaign_content")
    op.drop_index(op.f("ix_campaign_content_campaign_id"), table_name="campaign_content")
    op.drop_table("campaign_content")
