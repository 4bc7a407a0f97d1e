"""Postgres-backed repository for briefing jobs using SQLAlchemy."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import get_session_factory
from app.jobs.models import MAX_JOB_ATTEMPTS, JobArtifacts, JobRecord
from app.schema.jobs import BriefingJob
from app.storage.jobs_repo import JobsRepository

# Jobs without an explicit not-before time become eligible this long before their scheduled time.
LEAD_TIME = timedelta(hours=2)


def _to_float(value: Decimal | float | None) -> float | None:
  return float(value) if value is not None else None


def _lease_values(worker_id: str, lease_minutes: int) -> dict[str, Any]:
  return {
    "worker_id": worker_id,
    "lease_until": func.now() + timedelta(minutes=lease_minutes),
    "status": "processing",
    "attempt_count": BriefingJob.attempt_count + 1,
    "updated_at": func.now(),
  }


def _retryable_unleased() -> Any:
  """Status, lease and attempt conditions shared by both lease statements."""
  return and_(
    or_(BriefingJob.status == "queued", and_(BriefingJob.status == "failed", BriefingJob.attempt_count < MAX_JOB_ATTEMPTS)),
    or_(BriefingJob.lease_until.is_(None), BriefingJob.lease_until < func.now()),
    BriefingJob.attempt_count < MAX_JOB_ATTEMPTS,
  )


def _held_by(job_id: str, worker_id: str) -> Any:
  return and_(BriefingJob.job_id == job_id, BriefingJob.status == "processing", BriefingJob.worker_id == worker_id)


class PostgresJobsRepository(JobsRepository):
  """Persist briefing jobs to Postgres; leasing uses FOR UPDATE SKIP LOCKED."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(BriefingJob, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def release_expired_leases(self) -> int:
    stmt = (
      update(BriefingJob)
      .where(BriefingJob.status == "processing", BriefingJob.lease_until < func.now())
      .values(
        worker_id=None,
        lease_until=None,
        status=case((BriefingJob.attempt_count >= MAX_JOB_ATTEMPTS, "failed"), else_="queued"),
        updated_at=func.now(),
      )
      .execution_options(synchronize_session=False)
    )
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      await session.commit()
      return int(result.rowcount or 0)

  async def lease_next_job(self, worker_id: str, lease_minutes: int) -> str | None:
    eligible_at = func.coalesce(BriefingJob.process_not_before, BriefingJob.scheduled_at - LEAD_TIME, BriefingJob.created_at)
    candidate = (
      select(BriefingJob.job_id)
      .where(_retryable_unleased(), func.now() >= eligible_at)
      .order_by(BriefingJob.priority.desc(), BriefingJob.scheduled_at.asc().nulls_last(), BriefingJob.created_at.asc())
      .limit(1)
      .with_for_update(skip_locked=True)
      .scalar_subquery()
    )
    stmt = update(BriefingJob).where(BriefingJob.job_id == candidate).values(**_lease_values(worker_id, lease_minutes)).returning(BriefingJob.job_id).execution_options(synchronize_session=False)
    return await self._execute_lease(stmt)

  async def lease_specific_job(self, job_id: str, worker_id: str, lease_minutes: int) -> str | None:
    stmt = (
      update(BriefingJob)
      .where(
        BriefingJob.job_id == job_id,
        _retryable_unleased(),
        or_(BriefingJob.process_not_before.is_(None), BriefingJob.process_not_before <= func.now()),
      )
      .values(**_lease_values(worker_id, lease_minutes))
      .returning(BriefingJob.job_id)
      .execution_options(synchronize_session=False)
    )
    return await self._execute_lease(stmt)

  async def _execute_lease(self, stmt: Any) -> str | None:
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      leased = result.scalar_one_or_none()
      await session.commit()
      return str(leased) if leased is not None else None

  async def complete_job(self, job_id: str, worker_id: str, artifacts: JobArtifacts) -> bool:
    stmt = (
      update(BriefingJob)
      .where(_held_by(job_id, worker_id))
      .values(
        status="ready",
        script_content=artifacts.script_content,
        audio_file_path=artifacts.audio_file_path,
        audio_duration=artifacts.audio_duration,
        tts_provider=artifacts.tts_provider,
        script_cost=artifacts.script_cost,
        tts_cost=artifacts.tts_cost,
        total_cost=artifacts.total_cost,
        error_code=None,
        error_message=None,
        worker_id=None,
        lease_until=None,
        completed_at=func.now(),
        updated_at=func.now(),
      )
      .execution_options(synchronize_session=False)
    )
    return await self._execute_guarded(stmt)

  async def fail_job(self, job_id: str, worker_id: str, code: str, message: str) -> bool:
    stmt = (
      update(BriefingJob)
      .where(_held_by(job_id, worker_id))
      .values(status="failed", error_code=code, error_message=message[:2000], worker_id=None, lease_until=None, updated_at=func.now())
      .execution_options(synchronize_session=False)
    )
    return await self._execute_guarded(stmt)

  async def _execute_guarded(self, stmt: Any) -> bool:
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      await session.commit()
      return bool(result.rowcount)

  async def scrub_sensitive_fields(self, job_id: str) -> None:
    stmt = update(BriefingJob).where(BriefingJob.job_id == job_id).values(location_data=None, weather_data=None, calendar_events=None, updated_at=func.now()).execution_options(synchronize_session=False)
    async with self._session_factory() as session:
      await session.execute(stmt)
      await session.commit()

  async def requeue_job(self, job_id: str) -> bool:
    stmt = (
      update(BriefingJob)
      .where(BriefingJob.job_id == job_id, BriefingJob.status == "failed")
      .values(
        status="queued",
        attempt_count=0,
        worker_id=None,
        lease_until=None,
        script_content=None,
        audio_file_path=None,
        audio_duration=None,
        tts_provider=None,
        script_cost=None,
        tts_cost=None,
        total_cost=None,
        error_code=None,
        error_message=None,
        completed_at=None,
        updated_at=func.now(),
      )
      .execution_options(synchronize_session=False)
    )
    return await self._execute_guarded(stmt)

  def _model_to_record(self, row: BriefingJob) -> JobRecord:
    return JobRecord(
      job_id=row.job_id,
      user_id=row.user_id,
      local_date=row.local_date.isoformat(),
      timezone=row.timezone,
      status=row.status,  # type: ignore[arg-type]
      scheduled_at=row.scheduled_at,
      priority=row.priority,
      attempt_count=row.attempt_count,
      worker_id=row.worker_id,
      lease_until=row.lease_until,
      process_not_before=row.process_not_before,
      is_welcome=row.is_welcome,
      preferred_name=row.preferred_name,
      include_weather=row.include_weather,
      include_news=row.include_news,
      include_sports=row.include_sports,
      include_stocks=row.include_stocks,
      include_quotes=row.include_quotes,
      include_calendar=row.include_calendar,
      stock_symbols=list(row.stock_symbols or []),
      selected_sports=list(row.selected_sports or []),
      selected_news_categories=list(row.selected_news_categories or []),
      quote_preference=row.quote_preference,
      voice_option=row.voice_option,
      daystart_length=row.daystart_length,
      location_data=row.location_data,
      weather_data=row.weather_data,
      calendar_events=row.calendar_events,
      script_content=row.script_content,
      audio_file_path=row.audio_file_path,
      audio_duration=row.audio_duration,
      tts_provider=row.tts_provider,
      script_cost=_to_float(row.script_cost),
      tts_cost=_to_float(row.tts_cost),
      total_cost=_to_float(row.total_cost),
      error_code=row.error_code,
      error_message=row.error_message,
      created_at=row.created_at,
      updated_at=row.updated_at,
      completed_at=row.completed_at,
    )
