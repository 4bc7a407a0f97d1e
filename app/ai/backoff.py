"""Retry and deadline policy for network-bound calls."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar

import httpx
import openai

from app.briefing.errors import DeadlineExceeded
from app.config import Settings

T = TypeVar("T")
logger = logging.getLogger(__name__)

_TRANSIENT_STATUS_CODES = frozenset({408, 409, 425, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
  """Bounded retry configuration for one class of call site.

  ``timeout`` races every individual attempt; a timed-out attempt is treated as
  a transient failure. ``retry_after_cap`` bounds how long an upstream hint may
  make us wait.
  """

  max_tries: int = 3
  base_delay: float = 1.0
  max_delay: float = 30.0
  timeout: float | None = 60.0
  jitter: float = 0.25
  retry_after_cap: float = 60.0

  def __post_init__(self) -> None:
    if self.max_tries < 1:
      raise ValueError("max_tries must be at least 1")
    if self.base_delay < 0 or self.max_delay < 0:
      raise ValueError("delays must be non-negative")
    if not 0 <= self.jitter < 1:
      raise ValueError("jitter must be in [0, 1)")


def _status_code(exc: BaseException) -> int | None:
  if isinstance(exc, httpx.HTTPStatusError):
    return exc.response.status_code
  if isinstance(exc, openai.APIStatusError):
    return exc.status_code
  # google-api-core errors expose the HTTP status as ``code``.
  for attr in ("status_code", "code"):
    status_code = getattr(exc, attr, None)
    if isinstance(status_code, int) and not isinstance(status_code, bool) and 100 <= status_code < 600:
      return status_code
  return None


def is_transient_error(exc: BaseException) -> bool:
  """Return True when an error is worth retrying."""
  if isinstance(exc, DeadlineExceeded | asyncio.TimeoutError):
    return True
  if isinstance(exc, httpx.TransportError):
    return True
  if isinstance(exc, openai.APIConnectionError | openai.APITimeoutError | openai.RateLimitError | openai.InternalServerError):
    return True
  status_code = _status_code(exc)
  if status_code is not None:
    return status_code in _TRANSIENT_STATUS_CODES
  return False


def _parse_retry_after(raw: str | None) -> float | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  try:
    return max(0.0, float(value))
  except ValueError:
    pass
  # HTTP-date form of Retry-After.
  try:
    when = parsedate_to_datetime(value)
  except (TypeError, ValueError):
    return None
  if when.tzinfo is None:
    when = when.replace(tzinfo=UTC)
  return max(0.0, (when - datetime.now(UTC)).total_seconds())


def retry_after_seconds(exc: BaseException) -> float | None:
  """Extract an upstream retry-after hint in seconds, when one was provided."""
  hinted = getattr(exc, "retry_after", None)
  if isinstance(hinted, int | float):
    return max(0.0, float(hinted))
  response = getattr(exc, "response", None)
  headers = getattr(response, "headers", None)
  if headers is None:
    return None
  return _parse_retry_after(headers.get("retry-after"))


def compute_backoff(policy: RetryPolicy, attempt: int, *, retry_after: float | None = None, rng: random.Random | None = None) -> float:
  """Return the delay before the attempt following ``attempt`` (1-based)."""
  if retry_after is not None:
    return min(retry_after, policy.retry_after_cap)
  delay = min(policy.max_delay, policy.base_delay * (2 ** (attempt - 1)))
  if policy.jitter and delay > 0:
    source = rng or random
    spread = delay * policy.jitter
    delay += source.uniform(-spread, spread)
  return max(0.0, delay)


async def _call_with_deadline(policy: RetryPolicy, func: Callable[..., Awaitable[T]], operation: str, *args: Any, **kwargs: Any) -> T:
  if policy.timeout is None:
    return await func(*args, **kwargs)
  try:
    return await asyncio.wait_for(func(*args, **kwargs), timeout=policy.timeout)
  except TimeoutError as exc:
    if isinstance(exc, DeadlineExceeded):
      raise
    raise DeadlineExceeded(f"{operation} exceeded {policy.timeout:.1f}s deadline", operation=operation, timeout=policy.timeout) from exc


async def retry_async(
  policy: RetryPolicy,
  func: Callable[..., Awaitable[T]],
  *args: Any,
  operation: str = "call",
  sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
  **kwargs: Any,
) -> T:
  """Run ``func`` with a per-attempt deadline and jittered exponential backoff.

  Non-transient errors propagate immediately. After ``policy.max_tries``
  attempts the last error is re-raised unchanged.
  """
  for attempt in range(1, policy.max_tries + 1):
    try:
      result = await _call_with_deadline(policy, func, operation, *args, **kwargs)
      if attempt > 1:
        logger.info("Call succeeded after retry: operation=%s attempt=%d/%d", operation, attempt, policy.max_tries)
      return result
    except Exception as exc:
      if not is_transient_error(exc):
        raise
      if attempt >= policy.max_tries:
        logger.error("Call failed after %d attempts: operation=%s error=%s", policy.max_tries, operation, exc)
        raise
      delay = compute_backoff(policy, attempt, retry_after=retry_after_seconds(exc))
      logger.warning("Transient failure: operation=%s attempt=%d/%d error=%s; retrying in %.2fs", operation, attempt, policy.max_tries, exc, delay)
      await sleep(delay)

  raise RuntimeError(f"{operation} exhausted retries without raising")


def policy_from_settings(settings: Settings, *, timeout: float | None) -> RetryPolicy:
  """Build a policy from the shared retry settings and a call-site timeout."""
  return RetryPolicy(max_tries=settings.retry_max_tries, base_delay=settings.retry_base_delay_seconds, max_delay=settings.retry_max_delay_seconds, timeout=timeout)
