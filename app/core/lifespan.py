import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.database import dispose_engine
from app.core.logging import initialize_logging
from app.services.storage_client import build_storage_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the emulator bucket once uvicorn starts."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    initialize_logging(settings)
    logger.info("Startup complete - logging verified. environment=%s", settings.environment)
  except Exception:
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  if not settings.worker_secret:
    logger.warning("DAYSTART_WORKER_SECRET is not set; /worker/process-jobs will refuse every request.")

  # Create the audio bucket up front when running against the storage emulator.
  if settings.gcs_storage_host:
    try:
      storage_client = build_storage_client(settings)
      await storage_client.ensure_bucket()
      logger.info("Audio bucket ensured: %s", storage_client.bucket_name)
    except Exception as exc:
      logger.warning("Failed to ensure audio bucket at startup: %s", exc)

  yield

  await dispose_engine()
