"""Convert a target spoken duration into word, token, and story budgets.

Everything here is a pure function of its inputs so the prompt builder and the
aggregator can agree on the same numbers without sharing state.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Final

DEFAULT_WORDS_PER_MINUTE: Final[int] = 145
WORDS_TO_TOKENS: Final[float] = 1.2
TOKEN_FLOOR: Final[int] = 300
TOKEN_CEILING: Final[int] = 2000
BAND_TOLERANCE: Final[float] = 0.10

SECTION_ORDER: Final[tuple[str, ...]] = ("greeting", "weather", "calendar", "news", "sports", "stocks", "quote", "close")
SECTION_WEIGHTS: Final[dict[str, int]] = {"greeting": 5, "weather": 12, "calendar": 10, "news": 35, "sports": 12, "stocks": 10, "quote": 8, "close": 8}
# Sections that receive words freed by excluded or empty content sections, in priority order.
REASSIGN_PRIORITY: Final[tuple[str, ...]] = ("news", "weather", "calendar")


@dataclass(frozen=True)
class StoryCounts:
  news: int
  sports: int
  stocks: int


@dataclass(frozen=True)
class DurationTier:
  """Story counts for durations up to ``max_seconds`` (None means unbounded)."""

  max_seconds: int | None
  counts: StoryCounts


DEFAULT_TIERS: Final[tuple[DurationTier, ...]] = (
  DurationTier(60, StoryCounts(news=1, sports=1, stocks=1)),
  DurationTier(180, StoryCounts(news=2, sports=1, stocks=1)),
  DurationTier(300, StoryCounts(news=3, sports=1, stocks=2)),
  DurationTier(None, StoryCounts(news=4, sports=2, stocks=2)),
)


@dataclass(frozen=True)
class WordBand:
  target: int
  lower: int
  upper: int

  def contains(self, words: int) -> bool:
    return self.lower <= words <= self.upper


def tiers_from_config(raw: Sequence[tuple[int | None, int, int, int]] | None) -> tuple[DurationTier, ...]:
  """Build tiers from settings tuples, falling back to the defaults."""
  if not raw:
    return DEFAULT_TIERS
  return tuple(DurationTier(max_seconds, StoryCounts(news=news, sports=sports, stocks=stocks)) for max_seconds, news, sports, stocks in raw)


def word_target(seconds: float, wpm: int = DEFAULT_WORDS_PER_MINUTE) -> int:
  """Words that fit in ``seconds`` at a natural speaking rate."""
  return max(0, round((max(0.0, float(seconds)) / 60) * wpm))


def word_band(seconds: float, wpm: int = DEFAULT_WORDS_PER_MINUTE) -> WordBand:
  target = word_target(seconds, wpm)
  return WordBand(target=target, lower=round(target * (1 - BAND_TOLERANCE)), upper=round(target * (1 + BAND_TOLERANCE)))


def token_ceiling(seconds: float, wpm: int = DEFAULT_WORDS_PER_MINUTE) -> int:
  """Completion token limit for a script of the given duration."""
  base_tokens = round(word_target(seconds, wpm) * WORDS_TO_TOKENS)
  return max(TOKEN_FLOOR, min(TOKEN_CEILING, base_tokens))


def story_counts(seconds: float, tiers: Sequence[DurationTier] = DEFAULT_TIERS) -> StoryCounts:
  """Per-section item caps as a step function of duration."""
  for tier in tiers:
    if tier.max_seconds is None or seconds <= tier.max_seconds:
      return tier.counts
  return tiers[-1].counts


def _apportion(total: int, weights: Mapping[str, int]) -> dict[str, int]:
  """Split ``total`` by weight using largest remainders so parts sum exactly."""
  weight_sum = sum(weights.values())
  if total <= 0 or weight_sum <= 0:
    return {name: 0 for name in weights}
  exact = {name: total * weight / weight_sum for name, weight in weights.items()}
  floors = {name: int(value) for name, value in exact.items()}
  remainder = total - sum(floors.values())
  # Ties resolve in section order so the result is deterministic.
  ranked = sorted(weights, key=lambda name: (-(exact[name] - floors[name]), SECTION_ORDER.index(name) if name in SECTION_ORDER else len(SECTION_ORDER)))
  for name in ranked[:remainder]:
    floors[name] += 1
  return floors


def section_word_budget(seconds: float, included_sections: Iterable[str], wpm: int = DEFAULT_WORDS_PER_MINUTE) -> dict[str, int]:
  """Allocate the word target across included sections; excluded sections get zero."""
  included = set(included_sections)
  unknown = included - set(SECTION_ORDER)
  if unknown:
    raise ValueError(f"Unknown sections: {sorted(unknown)}")
  weights = {name: SECTION_WEIGHTS[name] for name in SECTION_ORDER if name in included}
  shares = _apportion(word_target(seconds, wpm), weights)
  return {name: shares.get(name, 0) for name in SECTION_ORDER}


def reassign_budget(budget: Mapping[str, int], empty_sections: Iterable[str]) -> dict[str, int]:
  """Move words from empty sections to news first, then weather, then calendar.

  A recipient must itself have a non-zero budget and not be empty. When no
  priority recipient qualifies, the words go to the largest remaining section.
  """
  result = dict(budget)
  empty = set(empty_sections)
  freed = 0
  for name in empty:
    freed += result.get(name, 0)
    result[name] = 0
  if freed == 0:
    return result
  for name in REASSIGN_PRIORITY:
    if name not in empty and result.get(name, 0) > 0:
      result[name] += freed
      return result
  candidates = [name for name in SECTION_ORDER if name not in empty and result.get(name, 0) > 0]
  if candidates:
    largest = max(candidates, key=lambda name: result[name])
    result[largest] += freed
  return result
