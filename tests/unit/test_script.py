"""Script synthesis: single generation, one band correction, fidelity checks."""

from __future__ import annotations

from datetime import timedelta

import httpx
import openai
import pytest

from app.ai.backoff import RetryPolicy
from app.briefing.aggregator import ContentAggregator, RankedCandidateSet
from app.briefing.budget import StoryCounts, story_counts, token_ceiling, word_band
from app.briefing.content import NewsItem, SportsEvent, StockQuote, parse_snapshot
from app.briefing.errors import GenerationError
from app.briefing.sanitize import count_words
from app.briefing.script import ScriptSynthesizer, unsupported_mentions
from tests.support import NOW, ScriptedModel, make_job, news_snapshot

FILLER = "The morning air is calm and the roads look clear."


def _script_of(words: int, *, lead: str = "Good morning, Sam. It's Monday, October 19.") -> str:
  """Build a spoken script with at least ``words`` words."""
  parts = [lead]
  while count_words(" ".join(parts)) < words:
    parts.append(FILLER)
  return " ".join(parts)


def _synthesizer(model: ScriptedModel, policy: RetryPolicy | None = None) -> ScriptSynthesizer:
  return ScriptSynthesizer(model, policy=policy or RetryPolicy(max_tries=1, timeout=5.0), input_price_per_1m=2.5, output_price_per_1m=10.0)


def _candidates() -> tuple[list[NewsItem], RankedCandidateSet]:
  snapshot = news_snapshot(
    {"title": "Austin council approves new transit line", "url": "https://kxan.example.com/transit", "source": {"name": "KXAN"}, "publishedAt": (NOW - timedelta(hours=1)).isoformat()},
    {"title": "Reservoir levels rise after storms", "url": "https://reuters.example.com/reservoir", "source": {"name": "Reuters"}, "publishedAt": (NOW - timedelta(hours=3)).isoformat()},
    {"title": "Mayor unveils downtown parking overhaul", "url": "https://blog.example.com/parking", "source": {"name": "Some Blog"}, "publishedAt": (NOW - timedelta(days=2)).isoformat()},
  )
  job = make_job()
  aggregator = ContentAggregator(trusted_sources=("reuters",), clock=lambda: NOW)
  ranked = aggregator.aggregate(job, [snapshot], story_counts(job.daystart_length))
  candidates = [item for item in parse_snapshot(snapshot) if isinstance(item, NewsItem)]
  return candidates, ranked


@pytest.mark.anyio
async def test_three_minute_briefing_lands_in_band_with_only_supplied_stories() -> None:
  candidates, ranked = _candidates()
  assert len(ranked.news) == 2
  band = word_band(180)
  supplied = " ".join(f"{item.title}." for item in ranked.news)
  script = _script_of(band.target, lead=f"Good morning, Sam. It's Monday, October 19.\n\n[pause]\n\n{supplied}")
  model = ScriptedModel(script)

  result = await _synthesizer(model).synthesize(make_job(), ranked)

  assert len(model.calls) == 1
  assert model.calls[0]["max_tokens"] == token_ceiling(180)
  assert result.in_band
  assert not result.corrected
  assert band.lower <= result.word_count <= band.upper
  assert "[pause]" in result.script
  assert unsupported_mentions(result.script, ranked, candidates) == []
  # 1000 prompt tokens at $2.50/M plus 600 completion tokens at $10/M.
  assert result.cost == pytest.approx(0.0085)
  prompt = model.calls[0]["messages"][-1]["content"]
  assert "Mayor unveils downtown parking overhaul" not in prompt


@pytest.mark.anyio
async def test_out_of_band_script_gets_exactly_one_correction() -> None:
  _, ranked = _candidates()
  band = word_band(180)
  model = ScriptedModel(_script_of(80), _script_of(band.target))

  result = await _synthesizer(model).synthesize(make_job(), ranked)

  assert len(model.calls) == 2
  assert result.corrected
  assert result.in_band
  correction_prompt = model.calls[1]["messages"][-1]["content"]
  assert "Expand" in correction_prompt
  assert len(result.usage) == 2
  assert result.cost == pytest.approx(0.017)


@pytest.mark.anyio
async def test_correction_that_misses_the_band_is_accepted() -> None:
  _, ranked = _candidates()
  band = word_band(180)
  model = ScriptedModel(_script_of(band.upper + 120), _script_of(band.upper + 60))

  result = await _synthesizer(model).synthesize(make_job(), ranked)

  assert len(model.calls) == 2
  assert result.corrected
  assert not result.in_band
  assert "Tighten" in model.calls[1]["messages"][-1]["content"]


@pytest.mark.anyio
async def test_empty_model_output_raises_generation_error() -> None:
  _, ranked = _candidates()
  with pytest.raises(GenerationError):
    await _synthesizer(ScriptedModel("   [stage direction]  ")).synthesize(make_job(), ranked)


@pytest.mark.anyio
async def test_provider_failures_become_generation_errors() -> None:
  _, ranked = _candidates()
  model = ScriptedModel(openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")))
  with pytest.raises(GenerationError) as exc_info:
    await _synthesizer(model, RetryPolicy(max_tries=2, base_delay=0.0, timeout=5.0, jitter=0.0)).synthesize(make_job(), ranked)
  assert exc_info.value.code == "GENERATION_ERROR"
  assert len(model.calls) == 2


def test_unsupported_mentions_flags_unsupplied_names() -> None:
  ranked = RankedCandidateSet(
    sports=(SportsEvent(source="espn", home_team="Spurs", away_team="Rockets", event_id="1"),),
    stocks=(StockQuote(source="yahoo", symbol="AAPL"),),
  )
  candidates = [
    SportsEvent(source="espn", home_team="Spurs", away_team="Rockets", event_id="1"),
    SportsEvent(source="espn", home_team="Cowboys", away_team="Eagles", event_id="2"),
    StockQuote(source="yahoo", symbol="AAPL"),
    StockQuote(source="yahoo", symbol="TSLA"),
    StockQuote(source="yahoo", symbol="GE"),
  ]
  script = "The Spurs beat the Rockets. Apple, AAPL, is up. The Cowboys play tonight and TSLA slid. We get going."
  assert unsupported_mentions(script, ranked, candidates) == ["Cowboys", "TSLA"]


def test_plan_budget_drops_missing_weather() -> None:
  job = make_job(weather_data=None)
  budget = _synthesizer(ScriptedModel("unused")).plan_budget(job, RankedCandidateSet(news=(NewsItem(source="AP", title="x"),)))
  assert budget["weather"] == 0
  assert sum(budget.values()) == word_band(180).target
  assert StoryCounts(2, 1, 1) == story_counts(180)
