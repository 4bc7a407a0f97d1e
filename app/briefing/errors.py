"""Failure taxonomy for the briefing pipeline.

Every error carries a stable ``code`` that is persisted on the job when the
error is fatal. Content fetch failures are absorbed by the aggregator, and
``LeaseUnavailable`` is a normal empty result rather than a failure.
"""

from __future__ import annotations


class BriefingError(Exception):
  """Base class for pipeline errors with a persisted error code."""

  code: str = "PROCESSING_ERROR"

  def __init__(self, message: str, *, code: str | None = None) -> None:
    super().__init__(message)
    if code is not None:
      self.code = code

  @property
  def message(self) -> str:
    return str(self)


class LeaseUnavailable(BriefingError):
  """No eligible job could be leased."""

  code = "LEASE_UNAVAILABLE"


class ContentFetchError(BriefingError):
  """A single content source failed to load or parse."""

  code = "CONTENT_FETCH_ERROR"

  def __init__(self, message: str, *, source: str | None = None) -> None:
    super().__init__(message)
    self.source = source


class GenerationError(BriefingError):
  """The language model returned no usable script text."""

  code = "GENERATION_ERROR"


class SynthesisError(BriefingError):
  """Every text-to-speech provider attempt failed."""

  code = "SYNTHESIS_ERROR"

  def __init__(self, message: str, *, attempts: list[str] | None = None) -> None:
    super().__init__(message)
    self.attempts = list(attempts or [])


class UploadError(BriefingError):
  """The artifact store rejected the audio upload."""

  code = "UPLOAD_ERROR"


class DeadlineExceeded(BriefingError, TimeoutError):
  """A network call exceeded its deadline."""

  code = "TIMEOUT"

  def __init__(self, message: str, *, operation: str | None = None, timeout: float | None = None) -> None:
    super().__init__(message)
    self.operation = operation
    self.timeout = timeout
