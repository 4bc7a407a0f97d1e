"""Domain models for briefing generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

JobStatus = Literal["queued", "processing", "ready", "failed", "cancelled"]

MAX_JOB_ATTEMPTS = 3
WELCOME_PRIORITY = 100
DEFAULT_PRIORITY = 50

# Snapshot fields cleared after a job is ready.
SENSITIVE_FIELDS: tuple[str, ...] = ("location_data", "weather_data", "calendar_events")


@dataclass
class JobRecord:
  """Represents one user's briefing for one local date."""

  job_id: str
  user_id: str
  local_date: str
  timezone: str
  status: JobStatus
  scheduled_at: datetime | None = None
  priority: int = DEFAULT_PRIORITY
  attempt_count: int = 0
  worker_id: str | None = None
  lease_until: datetime | None = None
  process_not_before: datetime | None = None
  is_welcome: bool = False
  preferred_name: str | None = None
  include_weather: bool = True
  include_news: bool = True
  include_sports: bool = False
  include_stocks: bool = False
  include_quotes: bool = True
  include_calendar: bool = False
  stock_symbols: list[str] = field(default_factory=list)
  selected_sports: list[str] = field(default_factory=list)
  selected_news_categories: list[str] = field(default_factory=list)
  quote_preference: str | None = None
  voice_option: str | None = None
  daystart_length: int = 180
  location_data: dict[str, Any] | None = None
  weather_data: dict[str, Any] | None = None
  calendar_events: list[dict[str, Any]] | None = None
  script_content: str | None = None
  audio_file_path: str | None = None
  audio_duration: int | None = None
  tts_provider: str | None = None
  script_cost: float | None = None
  tts_cost: float | None = None
  total_cost: float | None = None
  error_code: str | None = None
  error_message: str | None = None
  created_at: datetime | None = None
  updated_at: datetime | None = None
  completed_at: datetime | None = None


@dataclass(frozen=True)
class JobArtifacts:
  """Outputs persisted when a job finishes successfully."""

  script_content: str
  audio_file_path: str
  audio_duration: int
  tts_provider: str
  script_cost: float
  tts_cost: float

  @property
  def total_cost(self) -> float:
    return round(self.script_cost + self.tts_cost, 5)
