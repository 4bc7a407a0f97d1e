"""Prompt payloads and the daily quote picker."""

from __future__ import annotations

import json

from app.briefing.aggregator import RankedCandidateSet
from app.briefing.budget import StoryCounts, section_word_budget, word_band
from app.briefing.content import NewsItem, StockQuote
from app.briefing.prompts import build_payload, correction_instruction, empty_sections, friendly_date, included_sections, render_correction_messages, render_script_messages
from app.briefing.quotes import QUOTE_LIBRARY, daily_quote, resolve_category
from tests.support import make_job


def _ranked() -> RankedCandidateSet:
  return RankedCandidateSet(news=(NewsItem(source="Reuters", title="Transit plan approved", url="https://example.com/transit"),), stocks=(StockQuote(source="yahoo", symbol="AAPL", change_percent=1.5),))


def test_included_sections_follow_preferences() -> None:
  job = make_job(include_weather=False, include_sports=True, include_quotes=False)
  assert included_sections(job) == {"greeting", "close", "news", "sports"}


def test_empty_sections_only_lists_requested_sections_without_content() -> None:
  job = make_job(include_stocks=True, include_calendar=True, calendar_events=[])
  assert empty_sections(job, _ranked()) == {"calendar"}
  assert empty_sections(job, RankedCandidateSet()) == {"calendar", "news", "stocks"}


def test_friendly_date() -> None:
  assert friendly_date("2026-10-19") == "Monday, October 19"


def test_script_messages_embed_payload_and_limits() -> None:
  job = make_job(include_stocks=True, stock_symbols=["AAPL"])
  band = word_band(job.daystart_length)
  counts = StoryCounts(news=2, sports=1, stocks=1)
  budget = section_word_budget(job.daystart_length, included_sections(job))
  payload = build_payload(job, _ranked(), band=band, counts=counts, budget=budget, quote="Stay curious. - Anon")

  messages = render_script_messages(payload, band=band, counts=counts)
  assert [message["role"] for message in messages] == ["system", "system", "user"]
  user_prompt = messages[-1]["content"]
  assert "{{" not in user_prompt
  assert f"Target {band.target} words" in user_prompt
  assert "Transit plan approved" in user_prompt
  assert "[pause]" in user_prompt

  body = json.loads(user_prompt[user_prompt.index("{") : user_prompt.rindex("}") + 1])
  assert body["user"]["preferredName"] == "Sam"
  assert body["date"]["friendly"] == "Monday, October 19"
  assert body["limits"] == {"news": 2, "sports": 1, "stocks": 1}
  assert body["include"]["sports"] is False
  assert body["stocks"]["focusSymbols"] == ["AAPL"]


def test_correction_instruction_direction() -> None:
  band = word_band(180)
  budget = section_word_budget(180, {"greeting", "news", "stocks", "close"})
  assert correction_instruction(band.lower - 50, band, budget).startswith("Expand")
  assert "news section" in correction_instruction(band.lower - 50, band, budget)
  tighten = correction_instruction(band.upper + 40, band, budget)
  assert tighten.startswith("Tighten")
  assert "stocks section" in tighten


def test_correction_instruction_skips_unbudgeted_sections() -> None:
  band = word_band(180)
  budget = section_word_budget(180, {"greeting", "weather", "close"})
  assert budget["news"] == 0
  assert "weather section" in correction_instruction(band.lower - 50, band, budget)
  assert "weather section" in correction_instruction(band.upper + 40, band, budget)


def test_correction_messages_include_previous_script() -> None:
  job = make_job()
  band = word_band(180)
  budget = section_word_budget(180, included_sections(job))
  payload = build_payload(job, _ranked(), band=band, counts=StoryCounts(2, 1, 1), budget=budget, quote=None)
  messages = render_correction_messages(payload, "A very short draft.", word_count=4, band=band, budget=budget)
  assert messages[-1]["role"] == "user"
  assert "A very short draft." in messages[-1]["content"]
  assert "{{" not in messages[-1]["content"]


def test_daily_quote_is_deterministic_per_date_and_category() -> None:
  first = daily_quote("Stoic", "2026-10-19")
  assert first == daily_quote("stoic", "2026-10-19")
  assert first in QUOTE_LIBRARY["stoic"]
  assert daily_quote(None, "2026-10-19") in QUOTE_LIBRARY["inspirational"]


def test_quote_category_aliases() -> None:
  assert resolve_category("Good Feelings") == "good_feelings"
  assert resolve_category("good_feelings") == "good_feelings"
  assert resolve_category("astrology") == "inspirational"
