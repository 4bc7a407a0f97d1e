"""Shared contracts for language model providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class ModelResponse:
  """Text returned by a chat completion plus token usage."""

  content: str
  usage: dict[str, Any] | None = None
  model: str | None = None
  finish_reason: str | None = None


class LanguageModel(Protocol):
  """Chat-completion style model used for script generation."""

  name: str

  async def complete(self, messages: list[dict[str, str]], *, max_tokens: int, temperature: float) -> ModelResponse:
    """Send chat messages and return the generated text."""
