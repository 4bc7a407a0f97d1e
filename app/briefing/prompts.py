"""Prompt rendering for briefing scripts."""

from __future__ import annotations

import json
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Any

from app.briefing.aggregator import RankedCandidateSet
from app.briefing.budget import StoryCounts, WordBand
from app.briefing.content import NewsItem, SportsEvent, StockQuote
from app.briefing.sanitize import PAUSE_MARKER
from app.jobs.models import JobRecord

Messages = list[dict[str, str]]

FIDELITY_RULES: tuple[str, ...] = (
  "Use only facts supplied in this JSON.",
  "Omit rather than invent when a detail is missing.",
  "Never name a team, ticker, company, person or event that is not supplied.",
)

# Sections that can absorb extra words, most important first.
EXPAND_PRIORITY: tuple[str, ...] = ("news", "weather", "calendar", "sports", "stocks")
# Sections trimmed first when a script runs long.
TIGHTEN_PRIORITY: tuple[str, ...] = ("stocks", "sports", "calendar", "news", "weather")


def _replace_placeholders(template: str, values: dict[str, str]) -> str:
  """Substitute {{PLACEHOLDER}} markers with rendered values."""
  rendered = template
  for key, value in values.items():
    rendered = rendered.replace(f"{{{{{key}}}}}", value)
  return rendered


@lru_cache(maxsize=8)
def _load_prompt(name: str) -> str:
  try:
    path = Path(__file__).parent / "templates" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc


def friendly_date(local_date: str) -> str:
  day = date.fromisoformat(local_date)
  return f"{day:%A}, {day:%B} {day.day}"


def included_sections(job: JobRecord) -> set[str]:
  """Sections requested by the job's preferences; greeting and close are always present."""
  sections = {"greeting", "close"}
  flags = {
    "weather": job.include_weather,
    "calendar": job.include_calendar,
    "news": job.include_news,
    "sports": job.include_sports,
    "stocks": job.include_stocks,
    "quote": job.include_quotes,
  }
  sections.update(name for name, enabled in flags.items() if enabled)
  return sections


def empty_sections(job: JobRecord, ranked: RankedCandidateSet) -> set[str]:
  """Requested sections that have nothing to say for this run."""
  available = {
    "weather": bool(job.weather_data),
    "calendar": bool(job.calendar_events),
    "news": bool(ranked.news),
    "sports": bool(ranked.sports),
    "stocks": bool(ranked.stocks),
  }
  requested = included_sections(job)
  return {name for name, present in available.items() if name in requested and not present}


def _news_payload(item: NewsItem) -> dict[str, Any]:
  return {
    "key": item.key,
    "title": item.title,
    "summary": item.description,
    "source": item.source,
    "category": item.category,
    "publishedAt": item.published_at.isoformat() if item.published_at else None,
  }


def _sports_payload(item: SportsEvent) -> dict[str, Any]:
  return {
    "key": item.key,
    "league": item.league,
    "homeTeam": item.home_team,
    "awayTeam": item.away_team,
    "homeScore": item.home_score,
    "awayScore": item.away_score,
    "status": item.status,
    "startsAt": item.starts_at.isoformat() if item.starts_at else (item.event_date.isoformat() if item.event_date else None),
  }


def _stock_payload(item: StockQuote) -> dict[str, Any]:
  return {"key": item.key, "symbol": item.symbol, "name": item.name, "price": item.price, "change": item.change, "changePercent": item.change_percent}


def build_payload(job: JobRecord, ranked: RankedCandidateSet, *, band: WordBand, counts: StoryCounts, budget: dict[str, int], quote: str | None) -> dict[str, Any]:
  """Machine-readable context sent to the model."""
  sections = included_sections(job)
  return {
    "user": {"preferredName": job.preferred_name or "there", "timezone": job.timezone, "location": job.location_data},
    "date": {"iso": job.local_date, "friendly": friendly_date(job.local_date)},
    "duration": {"seconds": job.daystart_length, "targetWords": band.target},
    "wordBand": {"lower": band.lower, "upper": band.upper},
    "sectionBudgets": budget,
    "limits": {"news": counts.news, "sports": counts.sports, "stocks": counts.stocks},
    "include": {name: budget.get(name, 0) > 0 for name in ("weather", "calendar", "news", "sports", "stocks", "quote")},
    "weather": job.weather_data if "weather" in sections else None,
    "calendarEvents": (job.calendar_events or []) if "calendar" in sections else [],
    "news": [_news_payload(item) for item in ranked.news],
    "sports": [_sports_payload(item) for item in ranked.sports],
    "stocks": {"quotes": [_stock_payload(item) for item in ranked.stocks], "focusSymbols": list(job.stock_symbols)},
    "quote": quote,
    "isWelcome": job.is_welcome,
    "rules": list(FIDELITY_RULES),
  }


def _payload_json(payload: dict[str, Any]) -> str:
  return json.dumps(payload, indent=2, ensure_ascii=True, default=str)


def render_script_messages(payload: dict[str, Any], *, band: WordBand, counts: StoryCounts) -> Messages:
  """Exemplar, system role, then the instruction payload."""
  prompt = _replace_placeholders(
    _load_prompt("script.md"),
    {
      "TARGET_WORDS": str(band.target),
      "LOWER_WORDS": str(band.lower),
      "UPPER_WORDS": str(band.upper),
      "NEWS_LIMIT": str(counts.news),
      "SPORTS_LIMIT": str(counts.sports),
      "STOCKS_LIMIT": str(counts.stocks),
      "PAUSE_MARKER": PAUSE_MARKER,
      "PAYLOAD_JSON": _payload_json(payload),
    },
  )
  return [
    {"role": "system", "content": _load_prompt("exemplar.md")},
    {"role": "system", "content": _load_prompt("system.md")},
    {"role": "user", "content": prompt},
  ]


def correction_instruction(word_count: int, band: WordBand, budget: dict[str, int]) -> str:
  """Describe the expand or tighten edit needed to reach the band.

  The edit targets the first section in priority order that has a word
  budget. Per-section word counts of the draft are not measured.
  """
  if word_count < band.lower:
    deficit = band.target - word_count
    section = next((name for name in EXPAND_PRIORITY if budget.get(name, 0) > 0), "close")
    return f"Expand by about {deficit} words by adding one concrete supplied detail to the {section} section."
  excess = word_count - band.target
  section = next((name for name in TIGHTEN_PRIORITY if budget.get(name, 0) > 0), "close")
  return f"Tighten by about {excess} words by removing the least important supplied detail, starting with the {section} section."


def render_correction_messages(payload: dict[str, Any], script: str, *, word_count: int, band: WordBand, budget: dict[str, int]) -> Messages:
  prompt = _replace_placeholders(
    _load_prompt("correction.md"),
    {
      "WORD_COUNT": str(word_count),
      "TARGET_WORDS": str(band.target),
      "LOWER_WORDS": str(band.lower),
      "UPPER_WORDS": str(band.upper),
      "INSTRUCTION": correction_instruction(word_count, band, budget),
      "PAUSE_MARKER": PAUSE_MARKER,
      "PAYLOAD_JSON": _payload_json(payload),
      "SCRIPT": script,
    },
  )
  return [
    {"role": "system", "content": _load_prompt("system.md")},
    {"role": "user", "content": prompt},
  ]
