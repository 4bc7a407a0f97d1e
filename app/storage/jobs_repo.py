"""Storage interfaces for briefing jobs."""

from __future__ import annotations

from typing import Protocol

from app.jobs.models import JobArtifacts, JobRecord


class JobsRepository(Protocol):
  """Repository contract for job persistence and lease coordination.

  Lease operations must be single atomic compare-and-set statements so that at
  most one worker holds a non-expired lease on a job.
  """

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def release_expired_leases(self) -> int:
    """Return expired processing jobs to queued (or failed once attempts are spent)."""

  async def lease_next_job(self, worker_id: str, lease_minutes: int) -> str | None:
    """Atomically lease the next eligible job and return its id."""

  async def lease_specific_job(self, job_id: str, worker_id: str, lease_minutes: int) -> str | None:
    """Atomically lease one known job when it is eligible."""

  async def complete_job(self, job_id: str, worker_id: str, artifacts: JobArtifacts) -> bool:
    """Mark a leased job ready; False when the lease is no longer held."""

  async def fail_job(self, job_id: str, worker_id: str, code: str, message: str) -> bool:
    """Mark a leased job failed; False when the lease is no longer held."""

  async def scrub_sensitive_fields(self, job_id: str) -> None:
    """Clear location, weather and calendar snapshots from a job."""

  async def requeue_job(self, job_id: str) -> bool:
    """Reset a failed job to queued and clear prior artifacts."""
