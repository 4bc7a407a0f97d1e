from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint, func, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class BriefingJob(Base):
  __tablename__ = "briefing_jobs"
  __table_args__ = (
    UniqueConstraint("user_id", "local_date", name="ux_briefing_jobs_user_date"),
    Index("ix_briefing_jobs_lease_order", "status", text("priority DESC"), "scheduled_at", "created_at"),
    Index("ix_briefing_jobs_lease_until", "lease_until", postgresql_where=text("status = 'processing'")),
  )

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  local_date: Mapped[date] = mapped_column(Date, nullable=False)
  scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  timezone: Mapped[str] = mapped_column(String, nullable=False, server_default="UTC")
  status: Mapped[str] = mapped_column(String, nullable=False, server_default="queued")
  priority: Mapped[int] = mapped_column(Integer, nullable=False, server_default="50")
  attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
  worker_id: Mapped[str | None] = mapped_column(String, nullable=True)
  lease_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  process_not_before: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  is_welcome: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
  preferred_name: Mapped[str | None] = mapped_column(String, nullable=True)
  include_weather: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
  include_news: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
  include_sports: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
  include_stocks: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
  include_quotes: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("true"))
  include_calendar: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
  stock_symbols: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  selected_sports: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  selected_news_categories: Mapped[list] = mapped_column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
  quote_preference: Mapped[str | None] = mapped_column(String, nullable=True)
  voice_option: Mapped[str | None] = mapped_column(String, nullable=True)
  daystart_length: Mapped[int] = mapped_column(Integer, nullable=False, server_default="180")
  location_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  weather_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
  calendar_events: Mapped[list | None] = mapped_column(JSONB, nullable=True)
  script_content: Mapped[str | None] = mapped_column(Text, nullable=True)
  audio_file_path: Mapped[str | None] = mapped_column(String, nullable=True)
  audio_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
  tts_provider: Mapped[str | None] = mapped_column(String, nullable=True)
  script_cost: Mapped[float | None] = mapped_column(Numeric(10, 5), nullable=True)
  tts_cost: Mapped[float | None] = mapped_column(Numeric(10, 5), nullable=True)
  total_cost: Mapped[float | None] = mapped_column(Numeric(10, 5), nullable=True)
  error_code: Mapped[str | None] = mapped_column(String, nullable=True)
  error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
  completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ContentCacheEntry(Base):
  __tablename__ = "content_cache"
  __table_args__ = (Index("ix_content_cache_type_created", "content_type", text("created_at DESC")),)

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  content_type: Mapped[str] = mapped_column(String, nullable=False)
  source: Mapped[str] = mapped_column(String, nullable=False)
  data: Mapped[dict] = mapped_column(JSONB, nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=text("now() + interval '12 hours'"))
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
