"""Create briefing_jobs and content_cache tables.

Revision ID: 5a1d0c7e9b42
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "5a1d0c7e9b42"
down_revision = None
branch_labels = None
depends_on = None


def _jsonb_list(name: str) -> sa.Column:
  return sa.Column(name, postgresql.JSONB(astext_type=sa.Text()), server_default=sa.text("'[]'::jsonb"), nullable=False)


def upgrade() -> None:
  """Upgrade schema."""
  op.create_table(
    "briefing_jobs",
    sa.Column("job_id", sa.String(), nullable=False),
    sa.Column("user_id", sa.String(), nullable=False),
    sa.Column("local_date", sa.Date(), nullable=False),
    sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("timezone", sa.String(), server_default="UTC", nullable=False),
    sa.Column("status", sa.String(), server_default="queued", nullable=False),
    sa.Column("priority", sa.Integer(), server_default="50", nullable=False),
    sa.Column("attempt_count", sa.Integer(), server_default="0", nullable=False),
    sa.Column("worker_id", sa.String(), nullable=True),
    sa.Column("lease_until", sa.DateTime(timezone=True), nullable=True),
    sa.Column("process_not_before", sa.DateTime(timezone=True), nullable=True),
    sa.Column("is_welcome", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("preferred_name", sa.String(), nullable=True),
    sa.Column("include_weather", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    sa.Column("include_news", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    sa.Column("include_sports", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("include_stocks", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    sa.Column("include_quotes", sa.Boolean(), server_default=sa.text("true"), nullable=False),
    sa.Column("include_calendar", sa.Boolean(), server_default=sa.text("false"), nullable=False),
    _jsonb_list("stock_symbols"),
    _jsonb_list("selected_sports"),
    _jsonb_list("selected_news_categories"),
    sa.Column("quote_preference", sa.String(), nullable=True),
    sa.Column("voice_option", sa.String(), nullable=True),
    sa.Column("daystart_length", sa.Integer(), server_default="180", nullable=False),
    sa.Column("location_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("weather_data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("calendar_events", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    sa.Column("script_content", sa.Text(), nullable=True),
    sa.Column("audio_file_path", sa.String(), nullable=True),
    sa.Column("audio_duration", sa.Integer(), nullable=True),
    sa.Column("tts_provider", sa.String(), nullable=True),
    sa.Column("script_cost", sa.Numeric(10, 5), nullable=True),
    sa.Column("tts_cost", sa.Numeric(10, 5), nullable=True),
    sa.Column("total_cost", sa.Numeric(10, 5), nullable=True),
    sa.Column("error_code", sa.String(), nullable=True),
    sa.Column("error_message", sa.Text(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    sa.PrimaryKeyConstraint("job_id"),
    sa.UniqueConstraint("user_id", "local_date", name="ux_briefing_jobs_user_date"),
  )
  op.create_index(op.f("ix_briefing_jobs_user_id"), "briefing_jobs", ["user_id"], unique=False)
  op.create_index("ix_briefing_jobs_lease_order", "briefing_jobs", ["status", sa.text("priority DESC"), "scheduled_at", "created_at"], unique=False)
  op.create_index("ix_briefing_jobs_lease_until", "briefing_jobs", ["lease_until"], unique=False, postgresql_where=sa.text("status = 'processing'"))

  op.create_table(
    "content_cache",
    sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
    sa.Column("content_type", sa.String(), nullable=False),
    sa.Column("source", sa.String(), nullable=False),
    sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), server_default=sa.text("now() + interval '12 hours'"), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("ix_content_cache_type_created", "content_cache", ["content_type", sa.text("created_at DESC")], unique=False)


def downgrade() -> None:
  """Downgrade schema."""
  op.drop_index("ix_content_cache_type_created", table_name="content_cache")
  op.drop_table("content_cache")
  op.drop_index("ix_briefing_jobs_lease_until", table_name="briefing_jobs")
  op.drop_index("ix_briefing_jobs_lease_order", table_name="briefing_jobs")
  op.drop_index(op.f("ix_briefing_jobs_user_id"), table_name="briefing_jobs")
  op.drop_table("briefing_jobs")
