"""Object storage for rendered briefing audio."""

from __future__ import annotations

import logging
import os
from urllib.parse import urlparse, urlunparse

from app.briefing.errors import UploadError
from app.config import Settings
from google.api_core import exceptions as gcs_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

AUDIO_CONTENT_TYPE = "audio/aac"


def audio_object_name(user_id: str, local_date: str, job_id: str) -> str:
  """Blob key for one job's audio: ``{user_id}/{local_date}/{job_id}.aac``."""
  return f"{user_id}/{local_date}/{job_id}.aac"


class AudioStorageClient:
  """Thin wrapper over GCS and emulator access for audio uploads."""

  def __init__(self, settings: Settings, client: storage.Client | None = None) -> None:
    self._bucket_name = settings.audio_bucket
    self._storage_host = settings.gcs_storage_host
    if client is not None:
      self._client = client
    # Ensure emulator endpoint is visible to the SDK in local development.
    elif self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    return self._bucket_name

  async def ensure_bucket(self) -> None:
    """Create the bucket when missing; only in emulator mode."""
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def upload_audio(self, audio: bytes, object_name: str) -> str:
    """Upload AAC bytes, overwriting any previous render, and return the object path."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    blob.content_type = AUDIO_CONTENT_TYPE
    blob.cache_control = "private, max-age=86400"
    try:
      await run_in_threadpool(blob.upload_from_string, audio, AUDIO_CONTENT_TYPE)
    except gcs_exceptions.GoogleAPICallError as exc:
      # 5xx and 429 stay retryable; anything else is a rejected write.
      code = getattr(exc, "code", None)
      if isinstance(code, int) and (code >= 500 or code == 429):
        raise
      raise UploadError(f"Audio upload rejected for {object_name}: {exc}") from exc
    logger.info("Uploaded %d bytes to gs://%s/%s", len(audio), self._bucket_name, object_name)
    return object_name


def build_storage_client(settings: Settings) -> AudioStorageClient:
  """Create a storage client instance with environment-aware credentials."""
  return AudioStorageClient(settings)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
