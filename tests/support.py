"""In-memory collaborators and builders shared by briefing tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import Any

from app.ai.backoff import RetryPolicy
from app.ai.providers.base import ModelResponse
from app.briefing.content import ContentSnapshot, ContentType
from app.jobs.models import MAX_JOB_ATTEMPTS, JobArtifacts, JobRecord
from app.storage.postgres_jobs_repo import LEAD_TIME

NOW = datetime(2026, 10, 19, 11, 0, tzinfo=UTC)


def make_job(**overrides: Any) -> JobRecord:
  """Build a queued Monday job with weather, news and quotes enabled."""
  values: dict[str, Any] = {
    "job_id": "job-1",
    "user_id": "user-1",
    "local_date": "2026-10-19",
    "timezone": "America/Chicago",
    "status": "queued",
    "preferred_name": "Sam",
    "daystart_length": 180,
    "location_data": {"city": "Austin", "state": "Texas", "county": "Travis County"},
    "weather_data": {"condition": "Sunny", "high": 82, "low": 64},
    "created_at": NOW - timedelta(hours=3),
  }
  values.update(overrides)
  return JobRecord(**values)


class InMemoryJobsRepo:
  """In-memory jobs repository mirroring the Postgres lease semantics."""

  def __init__(self, now: datetime = NOW) -> None:
    self._jobs: dict[str, JobRecord] = {}
    self.now = now
    self.fail_scrub = False
    self.scrubbed: list[str] = []

  def add(self, record: JobRecord) -> None:
    self._jobs[record.job_id] = record

  def job(self, job_id: str) -> JobRecord:
    return self._jobs[job_id]

  async def get_job(self, job_id: str) -> JobRecord | None:
    record = self._jobs.get(job_id)
    return replace(record) if record is not None else None

  async def release_expired_leases(self) -> int:
    released = 0
    for job_id, record in self._jobs.items():
      if record.status == "processing" and record.lease_until is not None and record.lease_until < self.now:
        status = "failed" if record.attempt_count >= MAX_JOB_ATTEMPTS else "queued"
        self._jobs[job_id] = replace(record, status=status, worker_id=None, lease_until=None)
        released += 1
    return released

  def _retryable_unleased(self, record: JobRecord) -> bool:
    status_ok = record.status == "queued" or (record.status == "failed" and record.attempt_count < MAX_JOB_ATTEMPTS)
    lease_ok = record.lease_until is None or record.lease_until < self.now
    return status_ok and lease_ok and record.attempt_count < MAX_JOB_ATTEMPTS

  def _eligible_at(self, record: JobRecord) -> datetime:
    if record.process_not_before is not None:
      return record.process_not_before
    if record.scheduled_at is not None:
      return record.scheduled_at - LEAD_TIME
    return record.created_at or self.now

  def _lease(self, job_id: str, worker_id: str, lease_minutes: int) -> str:
    record = self._jobs[job_id]
    self._jobs[job_id] = replace(record, status="processing", worker_id=worker_id, lease_until=self.now + timedelta(minutes=lease_minutes), attempt_count=record.attempt_count + 1)
    return job_id

  async def lease_next_job(self, worker_id: str, lease_minutes: int) -> str | None:
    # Yield first so concurrent callers interleave; the select-and-update below stays atomic.
    await asyncio.sleep(0)
    eligible = [record for record in self._jobs.values() if self._retryable_unleased(record) and self.now >= self._eligible_at(record)]
    if not eligible:
      return None
    far_future = datetime.max.replace(tzinfo=UTC)
    eligible.sort(key=lambda record: (-record.priority, record.scheduled_at or far_future, record.created_at or self.now))
    return self._lease(eligible[0].job_id, worker_id, lease_minutes)

  async def lease_specific_job(self, job_id: str, worker_id: str, lease_minutes: int) -> str | None:
    await asyncio.sleep(0)
    record = self._jobs.get(job_id)
    if record is None or not self._retryable_unleased(record):
      return None
    if record.process_not_before is not None and record.process_not_before > self.now:
      return None
    return self._lease(job_id, worker_id, lease_minutes)

  def _held_by(self, job_id: str, worker_id: str) -> bool:
    record = self._jobs.get(job_id)
    return record is not None and record.status == "processing" and record.worker_id == worker_id

  async def complete_job(self, job_id: str, worker_id: str, artifacts: JobArtifacts) -> bool:
    if not self._held_by(job_id, worker_id):
      return False
    self._jobs[job_id] = replace(
      self._jobs[job_id],
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
      completed_at=self.now,
    )
    return True

  async def fail_job(self, job_id: str, worker_id: str, code: str, message: str) -> bool:
    if not self._held_by(job_id, worker_id):
      return False
    self._jobs[job_id] = replace(self._jobs[job_id], status="failed", error_code=code, error_message=message, worker_id=None, lease_until=None)
    return True

  async def scrub_sensitive_fields(self, job_id: str) -> None:
    if self.fail_scrub:
      raise RuntimeError("database went away")
    self.scrubbed.append(job_id)
    self._jobs[job_id] = replace(self._jobs[job_id], location_data=None, weather_data=None, calendar_events=None)

  async def requeue_job(self, job_id: str) -> bool:
    record = self._jobs.get(job_id)
    if record is None or record.status != "failed":
      return False
    self._jobs[job_id] = replace(record, status="queued", attempt_count=0, error_code=None, error_message=None, script_content=None, audio_file_path=None)
    return True


class StaticContentCache:
  """Content cache returning fixed snapshots filtered by type."""

  def __init__(self, snapshots: list[ContentSnapshot] | None = None, *, error: Exception | None = None) -> None:
    self._snapshots = list(snapshots or [])
    self._error = error
    self.requests: list[list[ContentType]] = []

  async def fetch(self, content_types: list[ContentType]) -> list[ContentSnapshot]:
    self.requests.append(list(content_types))
    if self._error is not None:
      raise self._error
    return [snapshot for snapshot in self._snapshots if snapshot.content_type in content_types]


class ScriptedModel:
  """Language model double that replays queued responses."""

  def __init__(self, *responses: str | Exception, usage: dict[str, int] | None = None) -> None:
    self.name = "fake-script-model"
    self._responses = list(responses)
    self._usage = usage or {"prompt_tokens": 1000, "completion_tokens": 600}
    self.calls: list[dict[str, Any]] = []

  async def complete(self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float) -> ModelResponse:
    self.calls.append({"messages": messages, "max_tokens": max_tokens, "temperature": temperature})
    response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
    if isinstance(response, Exception):
      raise response
    return ModelResponse(content=response, usage=dict(self._usage), model=self.name, finish_reason="stop")


class FakeSpeechProvider:
  """Speech provider double that fails a fixed number of times before succeeding."""

  def __init__(self, name: str, *, failures: int = 0, audio: bytes = b"\x00aac", per_char: float = 0.0001) -> None:
    self.name = name
    self._failures = failures
    self._audio = audio
    self._per_char = per_char
    self.calls: list[tuple[str, str | None]] = []

  def prepare_text(self, script: str) -> str:
    return script.replace("[pause]", f"<{self.name}-pause>")

  def estimate_cost(self, text: str, audio_seconds: float) -> float:
    return round(len(text) * self._per_char, 6)

  async def synthesize(self, text: str, voice: str | None) -> bytes:
    self.calls.append((text, voice))
    if len(self.calls) <= self._failures:
      raise RuntimeError(f"{self.name} unavailable")
    return self._audio


class FakeAudioStorage:
  """Records uploads instead of writing to GCS."""

  def __init__(self, *, error: Exception | None = None) -> None:
    self.uploads: dict[str, bytes] = {}
    self._error = error

  async def upload_audio(self, audio: bytes, object_name: str) -> str:
    if self._error is not None:
      raise self._error
    self.uploads[object_name] = audio
    return object_name


def news_snapshot(*articles: dict[str, Any], source: str = "newsapi") -> ContentSnapshot:
  return ContentSnapshot(content_type="news", source=source, data={"articles": list(articles)}, fetched_at=NOW)
