"""End-to-end worker runs against in-memory collaborators."""

from __future__ import annotations

from datetime import timedelta

import pytest

from app.ai.backoff import RetryPolicy
from app.audio.synthesizer import AudioSynthesizer
from app.briefing.aggregator import ContentAggregator
from app.briefing.budget import word_band
from app.briefing.errors import UploadError
from app.briefing.sanitize import count_words
from app.briefing.script import ScriptSynthesizer
from app.jobs.worker import BriefingWorker
from tests.support import NOW, FakeAudioStorage, FakeSpeechProvider, InMemoryJobsRepo, ScriptedModel, StaticContentCache, make_job, news_snapshot

GOOD_SCRIPT = " ".join(["Good morning, Sam."] + ["Austin wakes up to clear skies and light traffic today."] * 45)


def _worker(
  repo: InMemoryJobsRepo,
  policy: RetryPolicy,
  *,
  model: ScriptedModel | None = None,
  storage: FakeAudioStorage | None = None,
  content_cache: StaticContentCache | None = None,
  concurrency: int = 1,
  batch_size: int = 5,
) -> BriefingWorker:
  cache = content_cache or StaticContentCache([news_snapshot({"title": "Austin council approves new transit line", "url": "https://kxan.example.com/transit", "publishedAt": NOW.isoformat()})])
  return BriefingWorker(
    repo=repo,
    content_cache=cache,
    aggregator=ContentAggregator(clock=lambda: NOW),
    script_synthesizer=ScriptSynthesizer(model or ScriptedModel(GOOD_SCRIPT), policy=policy, input_price_per_1m=2.5, output_price_per_1m=10.0),
    audio_synthesizer=AudioSynthesizer(FakeSpeechProvider("openai"), FakeSpeechProvider("elevenlabs"), policy=policy),
    storage=storage or FakeAudioStorage(),  # type: ignore[arg-type]
    lease_policy=policy,
    upload_policy=policy,
    batch_size=batch_size,
    concurrency=concurrency,
  )


def test_good_script_fits_the_three_minute_band() -> None:
  assert word_band(180).contains(count_words(GOOD_SCRIPT))


@pytest.mark.anyio
async def test_sequential_run_finishes_jobs_and_scrubs_snapshots(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1", user_id="user-1", calendar_events=[{"title": "Dentist"}]))
  jobs_repo.add(make_job(job_id="job-2", user_id="user-2", is_welcome=True, priority=100))
  storage = FakeAudioStorage()

  summary = await _worker(jobs_repo, single_try_policy, storage=storage).run("req-1")

  assert summary.request_id == "req-1"
  assert summary.processed == 2
  assert summary.failed == 0
  assert summary.job_ids == ("job-2", "job-1")
  assert sorted(storage.uploads) == ["user-1/2026-10-19/job-1.aac", "user-2/2026-10-19/job-2.aac"]
  for job_id in ("job-1", "job-2"):
    record = jobs_repo.job(job_id)
    assert record.status == "ready"
    assert record.tts_provider == "openai"
    assert record.script_content
    assert record.audio_duration == pytest.approx(len(record.script_content) / 15.0, abs=1)
    assert record.total_cost == pytest.approx(record.script_cost + record.tts_cost)
    assert record.location_data is None
    assert record.weather_data is None
    assert record.calendar_events is None
  assert jobs_repo.scrubbed == ["job-2", "job-1"]


@pytest.mark.anyio
async def test_concurrent_run_processes_in_waves(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  for index in range(5):
    jobs_repo.add(make_job(job_id=f"job-{index}", user_id=f"user-{index}", created_at=NOW - timedelta(hours=3, minutes=index)))

  summary = await _worker(jobs_repo, single_try_policy, concurrency=2, batch_size=4).run("req-2")

  assert summary.processed == 4
  assert len(set(summary.job_ids)) == 4
  statuses = sorted(jobs_repo.job(f"job-{index}").status for index in range(5))
  assert statuses == ["queued", "ready", "ready", "ready", "ready"]


@pytest.mark.anyio
async def test_generation_failure_is_recorded_on_the_job(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1"))

  summary = await _worker(jobs_repo, single_try_policy, model=ScriptedModel("")).run("req-3", "job-1")

  assert summary.processed == 0
  assert summary.failed == 1
  record = jobs_repo.job("job-1")
  assert record.status == "failed"
  assert record.error_code == "GENERATION_ERROR"
  assert record.attempt_count == 1
  assert record.worker_id is None
  # Failed jobs keep their snapshots for the next attempt.
  assert record.location_data is not None


@pytest.mark.anyio
async def test_upload_rejection_fails_with_upload_code(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1"))
  storage = FakeAudioStorage(error=UploadError("bucket refused the write"))

  await _worker(jobs_repo, single_try_policy, storage=storage).run("req-4")

  assert jobs_repo.job("job-1").error_code == "UPLOAD_ERROR"


@pytest.mark.anyio
async def test_unexpected_errors_are_recorded_as_processing_errors(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1", local_date="not-a-date"))

  summary = await _worker(jobs_repo, single_try_policy).run("req-5")

  assert summary.failed == 1
  assert jobs_repo.job("job-1").error_code == "PROCESSING_ERROR"


@pytest.mark.anyio
async def test_content_cache_outage_still_produces_a_briefing(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1"))
  cache = StaticContentCache(error=ConnectionError("cache offline"))

  summary = await _worker(jobs_repo, single_try_policy, content_cache=cache).run("req-6")

  assert summary.processed == 1
  assert cache.requests == [["news"]]
  assert jobs_repo.job("job-1").status == "ready"


@pytest.mark.anyio
async def test_scrub_failure_does_not_fail_the_job(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1"))
  jobs_repo.fail_scrub = True

  summary = await _worker(jobs_repo, single_try_policy).run("req-7")

  assert summary.processed == 1
  record = jobs_repo.job("job-1")
  assert record.status == "ready"
  assert record.location_data is not None


@pytest.mark.anyio
async def test_unavailable_specific_job_returns_empty_summary(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1", status="ready"))

  summary = await _worker(jobs_repo, single_try_policy).run("req-8", "job-1")

  assert summary.processed == 0
  assert summary.failed == 0
  assert summary.job_ids == ()


@pytest.mark.anyio
async def test_expired_lease_is_recovered_at_the_start_of_a_run(jobs_repo: InMemoryJobsRepo, single_try_policy: RetryPolicy) -> None:
  jobs_repo.add(make_job(job_id="job-1", status="processing", attempt_count=1, worker_id="crashed", lease_until=NOW - timedelta(minutes=1)))

  summary = await _worker(jobs_repo, single_try_policy).run("req-9")

  assert summary.job_ids == ("job-1",)
  record = jobs_repo.job("job-1")
  assert record.status == "ready"
  assert record.attempt_count == 2
