from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, HTTPException, Request, status

from app.api.models import ProcessJobsRequest, ProcessJobsResponse
from app.config import Settings, get_settings
from app.jobs.worker import build_worker
from app.utils.ids import generate_request_id

router = APIRouter()
logger = logging.getLogger(__name__)


def _require_worker_secret(settings: Settings, authorization: str | None) -> None:
  # No secret configured means no trigger at all.
  if not settings.worker_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Worker authentication is not configured.")
  expected = f"Bearer {settings.worker_secret}"
  if not hmac.compare_digest((authorization or "").encode(), expected.encode()):
    logger.warning("Unauthorized access attempt to /process-jobs")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid worker token.", headers={"WWW-Authenticate": "Bearer"})


async def run_worker_in_background(request_id: str, job_id: str | None, settings: Settings) -> None:
  """Drain jobs outside the request cycle; failures only reach the logs."""
  try:
    worker = build_worker(settings)
    summary = await worker.run(request_id, job_id)
  except Exception:
    logger.error("Background worker run %s crashed", request_id, exc_info=True)
    return
  logger.info("Background worker run %s done: processed=%d failed=%d", request_id, summary.processed, summary.failed)


@router.post("/process-jobs", status_code=status.HTTP_202_ACCEPTED, response_model=ProcessJobsResponse)
async def process_jobs(
  request: Request,
  background_tasks: BackgroundTasks,
  settings: Annotated[Settings, Depends(get_settings)],
  payload: Annotated[ProcessJobsRequest | None, Body()] = None,
  authorization: str | None = Header(default=None),
) -> ProcessJobsResponse:
  """
  Trigger for the scheduler (or a manual call).
  Returns immediately and drains the queue in the background so callers never wait on LLM or TTS work.
  """
  _require_worker_secret(settings, authorization)

  request_id = getattr(request.state, "request_id", None) or generate_request_id()
  job_id = payload.job_id if payload is not None else None
  logger.info("Accepted worker trigger request_id=%s job_id=%s", request_id, job_id)
  background_tasks.add_task(run_worker_in_background, request_id, job_id, settings)

  message = f"Processing job {job_id}" if job_id else "Processing queued jobs"
  return ProcessJobsResponse(message=message, request_id=request_id)
