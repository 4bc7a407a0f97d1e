from __future__ import annotations

from typing import Any


def token_cost(prompt_tokens: int, completion_tokens: int, *, input_per_1m: float, output_per_1m: float) -> float:
  """Price a single call with separate input and output token rates."""
  call_cost = (max(0, int(prompt_tokens)) / 1_000_000) * input_per_1m
  call_cost += (max(0, int(completion_tokens)) / 1_000_000) * output_per_1m
  return round(call_cost, 6)


def calculate_total_cost(usage: list[dict[str, Any]], *, input_per_1m: float, output_per_1m: float) -> float:
  """Estimate total cost for a list of usage entries and annotate each entry."""
  total = 0.0
  for entry in usage:
    # Normalize token counts for consistent cost output.
    in_tokens = int(entry.get("prompt_tokens") or 0)
    out_tokens = int(entry.get("completion_tokens") or 0)
    call_cost = token_cost(in_tokens, out_tokens, input_per_1m=input_per_1m, output_per_1m=output_per_1m)

    entry["input_tokens"] = in_tokens
    entry["output_tokens"] = out_tokens
    entry["estimated_cost"] = call_cost

    total += call_cost

  return round(total, 6)


def character_cost(characters: int, *, per_1k_chars: float) -> float:
  """Price character-billed synthesis."""
  return round((max(0, characters) / 1000) * per_1k_chars, 6)


def speech_token_cost(characters: int, audio_seconds: float, *, text_per_1m: float, audio_per_minute: float) -> float:
  """Price token/duration-billed synthesis.

  Input text tokens are approximated at four characters per token; audio output
  is billed per estimated minute.
  """
  text_tokens = (max(0, characters) + 3) // 4
  cost = (text_tokens / 1_000_000) * text_per_1m
  cost += (max(0.0, audio_seconds) / 60) * audio_per_minute
  return round(cost, 6)
