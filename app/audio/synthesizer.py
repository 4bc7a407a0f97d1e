"""Render scripts to audio with primary/fallback provider failover."""

from __future__ import annotations

import logging
import math

from app.ai.backoff import RetryPolicy, policy_from_settings, retry_async
from app.audio.base import RenderResult, TTSProvider
from app.audio.elevenlabs import ElevenLabsProvider
from app.audio.openai_tts import OpenAISpeechProvider
from app.briefing.errors import SynthesisError
from app.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_CHARS_PER_SECOND = 15.0


def estimate_duration(script: str, chars_per_second: float = DEFAULT_CHARS_PER_SECOND) -> int:
  """Approximate spoken length from character count.

  This is not measured from the decoded audio; it is a fixed-rate estimate
  that is good enough for playback UI and billing.
  """
  return math.ceil(len(script) / chars_per_second)


class AudioSynthesizer:
  """Attempts 1..primary_attempts use the primary provider, later attempts the fallback."""

  def __init__(
    self,
    primary: TTSProvider,
    fallback: TTSProvider | None = None,
    *,
    policy: RetryPolicy,
    primary_attempts: int = 2,
    max_attempts: int = 3,
    chars_per_second: float = DEFAULT_CHARS_PER_SECOND,
  ) -> None:
    if max_attempts < 1 or primary_attempts < 0:
      raise ValueError("max_attempts must be at least 1 and primary_attempts non-negative")
    self._primary = primary
    self._fallback = fallback
    self._policy = policy
    self._primary_attempts = primary_attempts
    self._max_attempts = max_attempts
    self._chars_per_second = chars_per_second

  def provider_for_attempt(self, attempt: int) -> TTSProvider:
    # Without a fallback every attempt stays on the primary.
    if attempt <= self._primary_attempts or self._fallback is None:
      return self._primary
    return self._fallback

  async def render(self, script: str, voice: str | None) -> RenderResult:
    """Render ``script``; raise ``SynthesisError`` once every attempt has failed."""
    # Duration comes from the sanitized script, not the provider-specific text.
    duration = estimate_duration(script, self._chars_per_second)
    errors: list[str] = []
    for attempt in range(1, self._max_attempts + 1):
      provider = self.provider_for_attempt(attempt)
      # Each provider spells pause markers its own way.
      text = provider.prepare_text(script)
      try:
        audio = await retry_async(self._policy, provider.synthesize, text, voice, operation=f"tts.{provider.name}")
        # Empty audio counts as a failed attempt.
        if not audio:
          raise ValueError("provider returned empty audio")
      except Exception as exc:
        errors.append(f"attempt {attempt} ({provider.name}): {exc}")
        logger.warning("TTS attempt %d/%d with %s failed: %s", attempt, self._max_attempts, provider.name, exc)
        continue

      # Failed attempts bill nothing; cost follows the provider that succeeded.
      cost = provider.estimate_cost(text, duration)
      logger.info("TTS succeeded: provider=%s attempt=%d chars=%d duration=%ds cost=%.5f", provider.name, attempt, len(text), duration, cost)
      return RenderResult(audio=audio, duration_seconds=duration, cost=cost, provider=provider.name, attempts=attempt)

    raise SynthesisError(f"All {self._max_attempts} TTS attempts failed", attempts=errors)


def build_audio_synthesizer(settings: Settings) -> AudioSynthesizer:
  """Create the synthesizer with OpenAI primary and, when configured, ElevenLabs fallback."""
  policy = policy_from_settings(settings, timeout=settings.tts_timeout_seconds)
  primary = OpenAISpeechProvider(
    settings.tts_primary_model,
    api_key=settings.openai_api_key,
    base_url=settings.openai_base_url,
    text_price_per_1m=settings.tts_primary_text_price_per_1m,
    audio_price_per_minute=settings.tts_primary_audio_price_per_minute,
  )
  fallback = None
  if settings.elevenlabs_api_key:
    fallback = ElevenLabsProvider(
      settings.elevenlabs_api_key,
      model=settings.elevenlabs_model,
      base_url=settings.elevenlabs_base_url,
      price_per_1k_chars=settings.elevenlabs_price_per_1k_chars,
      timeout=settings.tts_timeout_seconds,
    )
  else:
    logger.warning("ELEVENLABS_API_KEY not set; TTS fallback disabled")
  return AudioSynthesizer(primary, fallback, policy=policy, primary_attempts=settings.tts_primary_attempts, max_attempts=settings.tts_max_attempts, chars_per_second=settings.chars_per_second)
