"""Shared contracts for text-to-speech providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

DEFAULT_VOICE = "voice1"


@dataclass(frozen=True)
class RenderResult:
  """Rendered audio plus estimated duration, cost and the provider that produced it."""

  audio: bytes
  duration_seconds: int
  cost: float
  provider: str
  attempts: int = 1


class TTSProvider(Protocol):
  """A speech synthesis backend with its own voice map, markup and pricing."""

  name: str

  def prepare_text(self, script: str) -> str:
    """Translate pause markers into provider markup."""

  def estimate_cost(self, text: str, audio_seconds: float) -> float:
    """Price one successful synthesis of ``text``."""

  async def synthesize(self, text: str, voice: str | None) -> bytes:
    """Return encoded audio for prepared text."""


def resolve_voice(voice_map: dict[str, str], voice: str | None) -> str:
  """Look up a voice option case-insensitively, defaulting to the first voice."""
  key = (voice or "").strip().lower()
  return voice_map.get(key) or voice_map[DEFAULT_VOICE]
