"""Duration-bounded script generation with a single band correction pass."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.ai.backoff import RetryPolicy, retry_async
from app.ai.providers.base import LanguageModel, ModelResponse
from app.ai.utils.cost import calculate_total_cost
from app.briefing.aggregator import RankedCandidateSet
from app.briefing.budget import DEFAULT_TIERS, DEFAULT_WORDS_PER_MINUTE, DurationTier, WordBand, reassign_budget, section_word_budget, story_counts, token_ceiling, word_band
from app.briefing.content import ContentItem, NewsItem, SportsEvent, StockQuote, normalize_title
from app.briefing.errors import GenerationError
from app.briefing.prompts import build_payload, empty_sections, included_sections, render_correction_messages, render_script_messages
from app.briefing.quotes import daily_quote
from app.briefing.sanitize import count_words, sanitize_for_speech
from app.jobs.models import JobRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScriptResult:
  """A sanitized script plus the accounting for the calls that produced it."""

  script: str
  cost: float
  word_count: int
  band: WordBand
  budget: dict[str, int] = field(hash=False)
  usage: list[dict[str, Any]] = field(default_factory=list, hash=False)
  corrected: bool = False

  @property
  def in_band(self) -> bool:
    return self.band.contains(self.word_count)


class ScriptSynthesizer:
  """Builds the prompt, calls the model, sanitizes, and corrects length once."""

  def __init__(
    self,
    model: LanguageModel,
    *,
    policy: RetryPolicy,
    input_price_per_1m: float,
    output_price_per_1m: float,
    temperature: float = 0.5,
    words_per_minute: int = DEFAULT_WORDS_PER_MINUTE,
    tiers: Sequence[DurationTier] = DEFAULT_TIERS,
  ) -> None:
    self._model = model
    self._policy = policy
    self._input_price = input_price_per_1m
    self._output_price = output_price_per_1m
    self._temperature = temperature
    self._wpm = words_per_minute
    self._tiers = tuple(tiers)

  def plan_budget(self, job: JobRecord, ranked: RankedCandidateSet) -> dict[str, int]:
    """Per-section word budget with empty sections reassigned."""
    budget = section_word_budget(job.daystart_length, included_sections(job), self._wpm)
    return reassign_budget(budget, empty_sections(job, ranked))

  async def synthesize(self, job: JobRecord, ranked: RankedCandidateSet) -> ScriptResult:
    seconds = job.daystart_length
    band = word_band(seconds, self._wpm)
    counts = story_counts(seconds, self._tiers)
    budget = self.plan_budget(job, ranked)
    max_tokens = token_ceiling(seconds, self._wpm)
    quote = daily_quote(job.quote_preference, job.local_date) if job.include_quotes else None

    payload = build_payload(job, ranked, band=band, counts=counts, budget=budget, quote=quote)
    usage: list[dict[str, Any]] = []

    response = await self._complete(render_script_messages(payload, band=band, counts=counts), max_tokens=max_tokens, operation="script.generate")
    usage.append(_usage_entry("generate", response))
    script = sanitize_for_speech(response.content)
    if not script:
      raise GenerationError("Language model returned no usable script text")
    words = count_words(script)
    logger.info("Generated script for job %s: words=%d band=%d-%d max_tokens=%d", job.job_id, words, band.lower, band.upper, max_tokens)

    corrected = False
    if not band.contains(words):
      messages = render_correction_messages(payload, script, word_count=words, band=band, budget=budget)
      response = await self._complete(messages, max_tokens=max_tokens, operation="script.correct")
      usage.append(_usage_entry("correct", response))
      script = sanitize_for_speech(response.content)
      if not script:
        raise GenerationError("Band correction returned no usable script text")
      corrected = True
      previous, words = words, count_words(script)
      if band.contains(words):
        logger.info("Band correction for job %s: %d -> %d words", job.job_id, previous, words)
      else:
        logger.warning("Band correction for job %s did not converge: %d -> %d words (band %d-%d); accepting", job.job_id, previous, words, band.lower, band.upper)

    cost = calculate_total_cost(usage, input_per_1m=self._input_price, output_per_1m=self._output_price)
    return ScriptResult(script=script, cost=cost, word_count=words, band=band, budget=budget, usage=usage, corrected=corrected)

  async def _complete(self, messages: list[dict[str, str]], *, max_tokens: int, operation: str) -> ModelResponse:
    try:
      return await retry_async(self._policy, self._model.complete, messages, operation=operation, max_tokens=max_tokens, temperature=self._temperature)
    except GenerationError:
      raise
    except Exception as exc:
      raise GenerationError(f"{operation} failed: {exc}") from exc


def _usage_entry(purpose: str, response: ModelResponse) -> dict[str, Any]:
  usage = response.usage or {}
  return {
    "purpose": purpose,
    "model": response.model,
    "prompt_tokens": int(usage.get("prompt_tokens") or 0),
    "completion_tokens": int(usage.get("completion_tokens") or 0),
  }


def mention_terms(item: ContentItem) -> list[str]:
  """Names a script would use to refer to an item."""
  if isinstance(item, StockQuote):
    return [item.symbol]
  if isinstance(item, SportsEvent):
    return [item.home_team, item.away_team]
  if isinstance(item, NewsItem):
    return [item.title]
  return []


def unsupported_mentions(script: str, ranked: RankedCandidateSet, candidates: Iterable[ContentItem]) -> list[str]:
  """Return names of candidate items that the script mentions but were never supplied.

  Symbols match case-sensitively on word boundaries; team names and headlines
  match case-insensitively after punctuation is removed.
  """
  supplied = ranked.keys()
  supplied_terms = {term for item in (*ranked.news, *ranked.sports, *ranked.stocks) for term in mention_terms(item)}
  normalized_script = f" {normalize_title(script)} "
  found: list[str] = []
  for item in candidates:
    if item.key in supplied:
      continue
    for term in mention_terms(item):
      if term in supplied_terms or term in found:
        continue
      if isinstance(item, StockQuote):
        hit = re.search(rf"(?<![\w-]){re.escape(term)}(?![\w-])", script) is not None
      else:
        hit = f" {normalize_title(term)} " in normalized_script
      if hit:
        found.append(term)
  return found
