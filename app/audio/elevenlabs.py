"""Fallback speech provider backed by the ElevenLabs HTTP API."""

from __future__ import annotations

import logging

import httpx

from app.ai.utils.cost import character_cost
from app.audio.base import resolve_voice
from app.briefing.sanitize import PAUSE_MARKER

logger = logging.getLogger(__name__)

PAUSE_TAG = '<break time="1.0s" />'

VOICE_MAP: dict[str, str] = {
  "voice1": "pNInz6obpgDQGcFmaJgB",
  "voice2": "21m00Tcm4TlvDq8ikWAM",
  "voice3": "ErXwobaYiN019PkySvjV",
  "grace": "pNInz6obpgDQGcFmaJgB",
  "rachel": "21m00Tcm4TlvDq8ikWAM",
  "matthew": "ErXwobaYiN019PkySvjV",
}

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.7, "style": 0.3, "use_speaker_boost": True}


class ElevenLabsProvider:
  """ElevenLabs synthesis; billed per character."""

  def __init__(
    self,
    api_key: str | None,
    *,
    model: str,
    base_url: str = "https://api.elevenlabs.io",
    price_per_1k_chars: float,
    timeout: float = 120.0,
    client: httpx.AsyncClient | None = None,
  ) -> None:
    if not api_key:
      raise ValueError("ELEVENLABS_API_KEY environment variable is required")
    self.name: str = "elevenlabs"
    self.model = model
    self._api_key = api_key
    self._base_url = base_url.rstrip("/")
    self._price = price_per_1k_chars
    self._timeout = timeout
    self._client = client

  def prepare_text(self, script: str) -> str:
    """Pauses become explicit timed break tags."""
    return " ".join(script.replace(PAUSE_MARKER, f" {PAUSE_TAG} ").split())

  def estimate_cost(self, text: str, audio_seconds: float) -> float:
    return character_cost(len(text), per_1k_chars=self._price)

  def _build_client(self) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=self._timeout, trust_env=False)

  async def synthesize(self, text: str, voice: str | None) -> bytes:
    voice_id = resolve_voice(VOICE_MAP, voice)
    url = f"{self._base_url}/v1/text-to-speech/{voice_id}"
    headers = {"accept": "audio/aac", "content-type": "application/json", "xi-api-key": self._api_key}
    body = {"text": text, "model_id": self.model, "voice_settings": VOICE_SETTINGS}

    if self._client is not None:
      response = await self._client.post(url, json=body, headers=headers)
    else:
      async with self._build_client() as client:
        response = await client.post(url, json=body, headers=headers)

    try:
      response.raise_for_status()
    except httpx.HTTPStatusError as e:
      logger.error("ElevenLabs returned %s for voice=%s: %s", e.response.status_code, voice_id, e.response.text[:500])
      raise
    logger.debug("ElevenLabs produced %d bytes with voice=%s", len(response.content), voice_id)
    return response.content
