"""Primary speech provider backed by the OpenAI audio API."""

from __future__ import annotations

import logging
import re

from openai import AsyncOpenAI

from app.ai.utils.cost import speech_token_cost
from app.audio.base import resolve_voice
from app.briefing.sanitize import PAUSE_MARKER

logger = logging.getLogger(__name__)

# The speech endpoint rejects longer inputs.
MAX_INPUT_CHARS = 4096

VOICE_MAP: dict[str, str] = {
  "voice1": "shimmer",
  "voice2": "nova",
  "voice3": "onyx",
  "grace": "shimmer",
  "rachel": "nova",
  "matthew": "onyx",
}

SPEAKING_INSTRUCTIONS = "Speak warmly and clearly at a relaxed morning pace, like a friendly radio host."


def split_for_speech(text: str, limit: int = MAX_INPUT_CHARS) -> list[str]:
  """Split text on paragraph, then sentence, boundaries into chunks under ``limit``."""
  if len(text) <= limit:
    return [text]
  chunks: list[str] = []
  current = ""
  pieces: list[str] = []
  for paragraph in text.split("\n\n"):
    if len(paragraph) <= limit:
      pieces.append(paragraph)
      continue
    pieces.extend(re.split(r"(?<=[.!?])\s+", paragraph))
  for piece in pieces:
    # Earlier text goes out before an oversized piece is cut up.
    if len(piece) > limit and current:
      chunks.append(current)
      current = ""
    while len(piece) > limit:
      chunks.append(piece[:limit])
      piece = piece[limit:]
    candidate = f"{current}\n\n{piece}" if current else piece
    if len(candidate) > limit:
      chunks.append(current)
      current = piece
    else:
      current = candidate
  if current:
    chunks.append(current)
  return [chunk for chunk in chunks if chunk.strip()]


class OpenAISpeechProvider:
  """OpenAI speech synthesis; billed by input tokens and audio minutes."""

  def __init__(
    self,
    model: str,
    *,
    api_key: str | None = None,
    base_url: str | None = None,
    text_price_per_1m: float,
    audio_price_per_minute: float,
    client: AsyncOpenAI | None = None,
  ) -> None:
    self.name: str = "openai"
    self.model = model
    self._text_price = text_price_per_1m
    self._audio_price = audio_price_per_minute
    if client is not None:
      self._client = client
      return
    if not api_key:
      raise ValueError("OPENAI_API_KEY environment variable is required")
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)

  def prepare_text(self, script: str) -> str:
    """No markup support, so pauses become paragraph breaks."""
    text = script.replace(PAUSE_MARKER, "\n\n")
    return re.sub(r"\n\s*\n(\s*\n)*", "\n\n", text).strip()

  def estimate_cost(self, text: str, audio_seconds: float) -> float:
    return speech_token_cost(len(text), audio_seconds, text_per_1m=self._text_price, audio_per_minute=self._audio_price)

  async def synthesize(self, text: str, voice: str | None) -> bytes:
    voice_id = resolve_voice(VOICE_MAP, voice)
    audio = bytearray()
    for chunk in split_for_speech(text):
      response = await self._client.audio.speech.create(model=self.model, voice=voice_id, input=chunk, instructions=SPEAKING_INSTRUCTIONS, response_format="aac")
      audio.extend(response.content)
    logger.debug("OpenAI speech produced %d bytes with voice=%s", len(audio), voice_id)
    return bytes(audio)
