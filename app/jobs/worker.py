"""Background processor that drains briefing jobs through the pipeline."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from app.ai.backoff import RetryPolicy, policy_from_settings, retry_async
from app.ai.providers.openai_chat import build_script_model
from app.audio.synthesizer import AudioSynthesizer, build_audio_synthesizer
from app.briefing.aggregator import ContentAggregator
from app.briefing.budget import DEFAULT_TIERS, DurationTier, story_counts, tiers_from_config
from app.briefing.content import ContentSnapshot, ContentType
from app.briefing.errors import BriefingError, ContentFetchError, LeaseUnavailable, UploadError
from app.briefing.script import ScriptSynthesizer
from app.config import Settings
from app.jobs.lease import LeaseCoordinator
from app.jobs.models import JobArtifacts, JobRecord
from app.services.storage_client import AudioStorageClient, audio_object_name, build_storage_client
from app.storage.content_cache import ContentCache, PostgresContentCache
from app.storage.jobs_repo import JobsRepository
from app.storage.postgres_jobs_repo import PostgresJobsRepository
from app.utils.ids import generate_worker_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkerRunSummary:
  """Outcome of one worker invocation."""

  request_id: str
  worker_id: str
  processed: int = 0
  failed: int = 0
  job_ids: tuple[str, ...] = ()


class BriefingWorker:
  """Leases jobs and runs each one through aggregate, script, audio, upload and finalize."""

  def __init__(
    self,
    *,
    repo: JobsRepository,
    content_cache: ContentCache,
    aggregator: ContentAggregator,
    script_synthesizer: ScriptSynthesizer,
    audio_synthesizer: AudioSynthesizer,
    storage: AudioStorageClient,
    lease_policy: RetryPolicy,
    upload_policy: RetryPolicy,
    batch_size: int = 5,
    concurrency: int = 1,
    lease_minutes: int = 15,
    tiers: Sequence[DurationTier] = DEFAULT_TIERS,
  ) -> None:
    if batch_size < 1 or concurrency < 1:
      raise ValueError("batch_size and concurrency must be at least 1")
    self._repo = repo
    self._content_cache = content_cache
    self._aggregator = aggregator
    self._script = script_synthesizer
    self._audio = audio_synthesizer
    self._storage = storage
    self._lease_policy = lease_policy
    self._upload_policy = upload_policy
    self._batch_size = batch_size
    self._concurrency = concurrency
    self._lease_minutes = lease_minutes
    self._tiers = tuple(tiers)

  async def run(self, request_id: str, job_id: str | None = None) -> WorkerRunSummary:
    """Release expired leases, then process one named job or drain a batch."""
    worker_id = generate_worker_id()
    lease = LeaseCoordinator(self._repo, worker_id=worker_id, lease_minutes=self._lease_minutes, policy=self._lease_policy)
    logger.info("Worker run started: request_id=%s worker_id=%s job_id=%s", request_id, worker_id, job_id)

    # Stale leases from crashed runs go back to the queue before anything is leased.
    await lease.release_expired_leases()

    # A named job is processed alone; otherwise drain up to batch_size jobs.
    if job_id is not None:
      try:
        leased = await lease.lease_specific(job_id)
      except LeaseUnavailable as exc:
        logger.info("Worker run %s: %s", request_id, exc)
        return WorkerRunSummary(request_id=request_id, worker_id=worker_id)
      results = [(leased, await self.process_job(lease, leased))]
    elif self._concurrency == 1:
      results = await self._drain_sequential(lease)
    else:
      results = await self._drain_concurrent(lease)

    processed = sum(1 for _, ok in results if ok)
    summary = WorkerRunSummary(request_id=request_id, worker_id=worker_id, processed=processed, failed=len(results) - processed, job_ids=tuple(job for job, _ in results))
    logger.info("Worker run finished: request_id=%s worker_id=%s processed=%d failed=%d", request_id, worker_id, summary.processed, summary.failed)
    return summary

  async def _lease_next(self, lease: LeaseCoordinator) -> str | None:
    try:
      return await lease.lease_next()
    # A lease error ends the drain; jobs already leased still finish.
    except Exception:
      logger.error("Leasing failed for worker %s; stopping this run", lease.worker_id, exc_info=True)
      return None

  async def _drain_sequential(self, lease: LeaseCoordinator) -> list[tuple[str, bool]]:
    results: list[tuple[str, bool]] = []
    for _ in range(self._batch_size):
      job_id = await self._lease_next(lease)
      if job_id is None:
        break
      results.append((job_id, await self.process_job(lease, job_id)))
    return results

  async def _drain_concurrent(self, lease: LeaseCoordinator) -> list[tuple[str, bool]]:
    """Lease and process waves of up to ``concurrency`` distinct jobs."""
    results: list[tuple[str, bool]] = []
    remaining = self._batch_size
    while remaining > 0:
      wave = min(self._concurrency, remaining)
      leased = [job_id for job_id in await asyncio.gather(*(self._lease_next(lease) for _ in range(wave))) if job_id is not None]
      if not leased:
        break
      outcomes = await asyncio.gather(*(self.process_job(lease, job_id) for job_id in leased))
      results.extend(zip(leased, outcomes, strict=True))
      remaining -= len(leased)
      # A short wave means the queue is empty.
      if len(leased) < wave:
        break
    return results

  async def process_job(self, lease: LeaseCoordinator, job_id: str) -> bool:
    """Run one leased job to ``ready`` or ``failed``; never raises."""
    started = time.monotonic()
    try:
      job = await self._repo.get_job(job_id)
      if job is None:
        raise BriefingError(f"Job {job_id} not found")
      logger.info("Processing job %s for user %s on %s", job.job_id, job.user_id, job.local_date)
      artifacts = await self.run_pipeline(job)
      completed = await lease.complete(job_id, artifacts)
    except BriefingError as exc:
      logger.warning("Job %s failed with %s: %s", job_id, exc.code, exc)
      await self._record_failure(lease, job_id, exc.code, exc.message)
      return False
    except Exception as exc:
      logger.error("Job %s failed unexpectedly", job_id, exc_info=True)
      await self._record_failure(lease, job_id, BriefingError.code, str(exc) or type(exc).__name__)
      return False

    # Lost lease: another worker owns the job now, so leave its row alone.
    if not completed:
      return False
    logger.info(
      "Job %s ready in %.1fs: provider=%s duration=%ss script=$%.5f tts=$%.5f total=$%.5f",
      job_id,
      time.monotonic() - started,
      artifacts.tts_provider,
      artifacts.audio_duration,
      artifacts.script_cost,
      artifacts.tts_cost,
      artifacts.total_cost,
    )
    # Personal fields are scrubbed only once the job is ready.
    await self._scrub(job_id)
    return True

  async def run_pipeline(self, job: JobRecord) -> JobArtifacts:
    """Aggregate, script, render and upload, strictly in that order."""
    counts = story_counts(job.daystart_length, self._tiers)
    snapshots = await self._fetch_content(job)
    ranked = self._aggregator.aggregate(job, snapshots, counts)
    script = await self._script.synthesize(job, ranked)
    rendered = await self._audio.render(script.script, job.voice_option)
    path = await self._upload(job, rendered.audio)
    return JobArtifacts(
      script_content=script.script,
      audio_file_path=path,
      audio_duration=rendered.duration_seconds,
      tts_provider=rendered.provider,
      script_cost=script.cost,
      tts_cost=rendered.cost,
    )

  async def _fetch_content(self, job: JobRecord) -> list[ContentSnapshot]:
    types: list[ContentType] = [name for name, enabled in (("news", job.include_news), ("sports", job.include_sports), ("stocks", job.include_stocks)) if enabled]
    if not types:
      return []
    # Missing content degrades the briefing instead of failing the job.
    try:
      return await self._content_cache.fetch(types)
    except Exception as exc:
      error = ContentFetchError(f"Content cache unavailable: {exc}")
      logger.warning("Job %s continues without cached content: %s", job.job_id, error, exc_info=True)
      return []

  async def _upload(self, job: JobRecord, audio: bytes) -> str:
    object_name = audio_object_name(job.user_id, job.local_date, job.job_id)
    try:
      return await retry_async(self._upload_policy, self._storage.upload_audio, audio, object_name, operation="upload.audio")
    # Retries exhausted; surface any other error as an upload failure.
    except UploadError:
      raise
    except Exception as exc:
      raise UploadError(f"Audio upload failed for {object_name}: {exc}") from exc

  async def _record_failure(self, lease: LeaseCoordinator, job_id: str, code: str, message: str) -> None:
    try:
      await lease.fail(job_id, code, message)
    except Exception:
      # The lease will expire and release_expired_leases will recover the job.
      logger.error("Could not record failure for job %s", job_id, exc_info=True)

  async def _scrub(self, job_id: str) -> None:
    try:
      await self._repo.scrub_sensitive_fields(job_id)
    except Exception:
      logger.warning("Privacy scrub failed for job %s", job_id, exc_info=True)


def build_worker(settings: Settings) -> BriefingWorker:
  """Wire the worker with Postgres, GCS, OpenAI and the configured TTS providers."""
  tiers = tiers_from_config(settings.duration_tiers)
  script_synthesizer = ScriptSynthesizer(
    build_script_model(settings),
    policy=policy_from_settings(settings, timeout=settings.llm_timeout_seconds),
    input_price_per_1m=settings.script_input_price_per_1m,
    output_price_per_1m=settings.script_output_price_per_1m,
    temperature=settings.script_temperature,
    words_per_minute=settings.words_per_minute,
    tiers=tiers,
  )
  return BriefingWorker(
    repo=PostgresJobsRepository(),
    content_cache=PostgresContentCache(),
    aggregator=ContentAggregator(trusted_sources=settings.trusted_news_sources, locality_weights=settings.locality_weights),
    script_synthesizer=script_synthesizer,
    audio_synthesizer=build_audio_synthesizer(settings),
    storage=build_storage_client(settings),
    lease_policy=policy_from_settings(settings, timeout=settings.lease_timeout_seconds),
    upload_policy=policy_from_settings(settings, timeout=settings.upload_timeout_seconds),
    batch_size=settings.worker_batch_size,
    concurrency=settings.worker_concurrency,
    lease_minutes=settings.lease_minutes,
    tiers=tiers,
  )
