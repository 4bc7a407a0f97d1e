"""Lease coordination over the jobs repository."""

from __future__ import annotations

import logging

from app.ai.backoff import RetryPolicy, retry_async
from app.briefing.errors import LeaseUnavailable
from app.jobs.models import JobArtifacts
from app.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


class LeaseCoordinator:
  """Wraps repository lease calls with deadlines and transient retries.

  Exclusivity comes from the repository's atomic statements; this class only
  adds bounded retries and logging around them.
  """

  def __init__(self, repo: JobsRepository, *, worker_id: str, lease_minutes: int, policy: RetryPolicy) -> None:
    self._repo = repo
    self.worker_id = worker_id
    self._lease_minutes = lease_minutes
    self._policy = policy

  async def release_expired_leases(self) -> int:
    released = await retry_async(self._policy, self._repo.release_expired_leases, operation="lease.release_expired")
    if released:
      logger.info("Released %d expired lease(s)", released)
    return released

  async def lease_next(self) -> str | None:
    """Lease the next eligible job; None when nothing is eligible."""
    return await retry_async(self._policy, self._repo.lease_next_job, self.worker_id, self._lease_minutes, operation="lease.next")

  async def lease_specific(self, job_id: str) -> str:
    """Lease one known job or raise ``LeaseUnavailable``."""
    leased = await retry_async(self._policy, self._repo.lease_specific_job, job_id, self.worker_id, self._lease_minutes, operation="lease.specific")
    if leased is None:
      raise LeaseUnavailable(f"Job {job_id} is not eligible for leasing")
    return leased

  async def complete(self, job_id: str, artifacts: JobArtifacts) -> bool:
    updated = await retry_async(self._policy, self._repo.complete_job, job_id, self.worker_id, artifacts, operation="lease.complete")
    if not updated:
      logger.warning("Job %s was no longer leased by worker %s at completion; result discarded", job_id, self.worker_id)
    return updated

  async def fail(self, job_id: str, code: str, message: str) -> bool:
    updated = await retry_async(self._policy, self._repo.fail_job, job_id, self.worker_id, code, message, operation="lease.fail")
    if not updated:
      logger.warning("Job %s was no longer leased by worker %s when recording failure %s", job_id, self.worker_id, code)
    return updated
