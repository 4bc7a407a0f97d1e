"""Flatten, deduplicate, rank, and cap cached content for one job."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.briefing.budget import StoryCounts
from app.briefing.content import ContentSnapshot, NewsItem, SportsEvent, StockQuote, Unparsed, dedupe, parse_snapshot
from app.briefing.errors import ContentFetchError
from app.config import DEFAULT_LOCALITY_WEIGHTS, DEFAULT_TRUSTED_SOURCES
from app.jobs.models import JobRecord

logger = logging.getLogger(__name__)

LOCALITY_LEVELS: tuple[str, ...] = ("neighborhood", "city", "county", "state")
INDEX_ETFS: frozenset[str] = frozenset({"SPY", "QQQ", "DIA", "IWM"})
TRUST_SCORE = 50.0
BREAKING_BOOST = 15.0
SPORTS_DATE_SLACK = timedelta(days=1)

_BREAKING_KEYWORDS = ("breaking", "developing", "just in", "urgent", "alert", "emergency")
_LOCATION_KEYS: dict[str, tuple[str, ...]] = {
  "neighborhood": ("neighborhood", "subLocality", "sub_locality"),
  "city": ("city", "locality"),
  "county": ("county", "subAdministrativeArea", "sub_administrative_area"),
  "state": ("state", "administrativeArea", "administrative_area", "region"),
}

# Matched after normalizing to lowercase words; exclusions are checked first.
_EXCLUDED_STATUS = ("postpon", "cancel", "suspend", "abandon", "delay", "forfeit")
_FINAL_STATUS = ("final", "full time", "fulltime", "ft", "ended", "finished", "complete", "after extra time", "aet")
_LIVE_STATUS = ("in progress", "live", "halftime", "half time", "in play", "inning", "quarter", "period", "overtime", "1st half", "2nd half")
_SCHEDULED_STATUS = ("scheduled", "pre", "pregame", "pre game", "not started", "ns", "upcoming", "tbd", "time tbd")
_STATUS_ORDER = {"live": 0, "final": 1, "scheduled": 2}


@dataclass(frozen=True)
class RankedCandidateSet:
  """Ranked, deduplicated, capped content for one job."""

  news: tuple[NewsItem, ...] = ()
  sports: tuple[SportsEvent, ...] = ()
  stocks: tuple[StockQuote, ...] = ()

  def keys(self) -> set[str]:
    return {item.key for item in (*self.news, *self.sports, *self.stocks)}


@dataclass(frozen=True)
class LocalityHints:
  neighborhood: str | None = None
  city: str | None = None
  county: str | None = None
  state: str | None = None

  @classmethod
  def from_location(cls, location: Mapping[str, Any] | None) -> LocalityHints:
    if not location:
      return cls()
    values: dict[str, str | None] = {}
    for level, keys in _LOCATION_KEYS.items():
      found = None
      for key in keys:
        raw = location.get(key)
        if isinstance(raw, str) and raw.strip():
          found = raw.strip()
          break
      values[level] = found
    return cls(**values)

  def items(self) -> list[tuple[str, str]]:
    return [(level, getattr(self, level)) for level in LOCALITY_LEVELS if getattr(self, level)]


def _word_pattern(term: str) -> re.Pattern[str]:
  return re.compile(rf"\b{re.escape(term.lower())}\b")


def _normalize_source(value: str) -> str:
  return re.sub(r"\s+", " ", value.strip().lower())


def normalize_status(raw: str | None) -> str | None:
  """Map an upstream status string to scheduled, live or final; None means ineligible."""
  if not raw:
    return None
  text = re.sub(r"[_\-]+", " ", raw.lower()).strip()
  if text.startswith("status "):
    text = text[len("status ") :]
  words = set(text.split())

  def matches(terms: Sequence[str]) -> bool:
    return any((term in words) if " " not in term and len(term) <= 3 else (term in text) for term in terms)

  # Postponed or cancelled games are dropped even when also marked final.
  if any(term in text for term in _EXCLUDED_STATUS):
    return None
  if matches(_FINAL_STATUS):
    return "final"
  if matches(_LIVE_STATUS):
    return "live"
  if matches(_SCHEDULED_STATUS):
    return "scheduled"
  return None


def is_weekend(local_date: date) -> bool:
  return local_date.weekday() >= 5


def is_crypto(quote: StockQuote) -> bool:
  return quote.symbol.upper().endswith("-USD") or quote.quote_type in ("crypto", "cryptocurrency")


def _job_zone(timezone: str | None) -> ZoneInfo:
  try:
    return ZoneInfo(timezone or "UTC")
  except (ZoneInfoNotFoundError, ValueError):
    logger.warning("Unknown timezone %r, using UTC", timezone)
    return ZoneInfo("UTC")


class ContentAggregator:
  """Turns content cache snapshots into a ranked candidate set."""

  def __init__(
    self,
    *,
    trusted_sources: Iterable[str] = DEFAULT_TRUSTED_SOURCES,
    locality_weights: Mapping[str, float] | None = None,
    clock: Callable[[], datetime] | None = None,
  ) -> None:
    self._trusted = frozenset(_normalize_source(source) for source in trusted_sources)
    self._locality_weights = dict(locality_weights or DEFAULT_LOCALITY_WEIGHTS)
    self._clock = clock or (lambda: datetime.now(UTC))

  def aggregate(self, job: JobRecord, snapshots: Sequence[ContentSnapshot], counts: StoryCounts) -> RankedCandidateSet:
    """Parse every snapshot, then rank and truncate each section."""
    now = self._clock()
    parsed = self._parse_all(snapshots)
    local_date = date.fromisoformat(job.local_date)

    # Sections the user opted out of are never ranked.
    news = self.rank_news([item for item in parsed if isinstance(item, NewsItem)], job, now=now) if job.include_news else []
    sports = self.rank_sports([item for item in parsed if isinstance(item, SportsEvent)], job, local_date) if job.include_sports else []
    stocks = self.rank_stocks([item for item in parsed if isinstance(item, StockQuote)], job, local_date) if job.include_stocks else []

    # Ranking runs on the full pool; truncation to story counts happens last.
    ranked = RankedCandidateSet(news=tuple(news[: counts.news]), sports=tuple(sports[: counts.sports]), stocks=tuple(stocks[: counts.stocks]))
    logger.info(
      "Aggregated content for job %s: news=%d/%d sports=%d/%d stocks=%d/%d",
      job.job_id,
      len(ranked.news),
      len(news),
      len(ranked.sports),
      len(sports),
      len(ranked.stocks),
      len(stocks),
    )
    return ranked

  def _parse_all(self, snapshots: Sequence[ContentSnapshot]) -> list[NewsItem | SportsEvent | StockQuote]:
    items: list[NewsItem | SportsEvent | StockQuote] = []
    for snapshot in snapshots:
      try:
        variants = parse_snapshot(snapshot)
      except Exception as exc:
        error = ContentFetchError(f"Failed to parse {snapshot.content_type} snapshot: {exc}", source=snapshot.source)
        logger.warning("Skipping content source %s: %s", snapshot.source, error, exc_info=True)
        continue
      # Unparsed variants are logged and skipped, never fatal.
      for variant in variants:
        if isinstance(variant, Unparsed):
          logger.info("Skipping %s snapshot from %s: %s", variant.content_type, variant.source, variant.reason)
          continue
        items.append(variant)
    return dedupe(items)

  def is_trusted(self, source: str) -> bool:
    return _normalize_source(source) in self._trusted

  def locality_score(self, item: NewsItem, hints: LocalityHints) -> float:
    """Weight of the most specific locality hint mentioned by the item."""
    text = item.text.lower()
    best = 0.0
    for level, value in hints.items():
      # Two-letter abbreviations match too many unrelated words.
      if len(value) < 3:
        continue
      if _word_pattern(value).search(text):
        best = max(best, float(self._locality_weights.get(level, 0.0)))
    return best

  def news_score(self, item: NewsItem, hints: LocalityHints, now: datetime) -> tuple[float, float]:
    """Return (total score, locality score) for a news item."""
    locality = self.locality_score(item, hints)
    score = locality
    if self.is_trusted(item.source):
      score += TRUST_SCORE
    text = item.text.lower()
    if any(keyword in text for keyword in _BREAKING_KEYWORDS):
      score += BREAKING_BOOST
    # Recency bonus for stories under six hours old.
    if item.published_at is not None:
      hours_old = (now - item.published_at).total_seconds() / 3600
      if 0 <= hours_old < 2:
        score += 10.0
      elif 0 <= hours_old < 6:
        score += 5.0
    return score, locality

  def rank_news(self, items: Sequence[NewsItem], job: JobRecord, *, now: datetime) -> list[NewsItem]:
    """Local matches first, then by score, then newest first."""
    categories = {category.lower() for category in job.selected_news_categories}
    # Uncategorized items pass any category filter.
    if categories:
      items = [item for item in items if item.category is None or item.category.lower() in categories]
    hints = LocalityHints.from_location(job.location_data)
    scored = []
    for item in items:
      score, locality = self.news_score(item, hints, now)
      published = item.published_at.timestamp() if item.published_at else 0.0
      # Any locality match outranks every non-local score.
      scored.append(((0 if locality > 0 else 1, -score, -published, item.key), item))
    scored.sort(key=lambda pair: pair[0])
    return [item for _, item in scored]

  def rank_sports(self, items: Sequence[SportsEvent], job: JobRecord, local_date: date) -> list[SportsEvent]:
    """Keep events near the job date with a usable status; live games first."""
    zone = _job_zone(job.timezone)
    leagues = [league.lower() for league in job.selected_sports]
    eligible = []
    for item in items:
      status = normalize_status(item.status)
      if status is None:
        continue
      # Kickoff time is converted to the job timezone when no event date is given.
      event_day = item.event_date or (item.starts_at.astimezone(zone).date() if item.starts_at else None)
      if event_day is None or abs(event_day - local_date) > SPORTS_DATE_SLACK:
        continue
      # League names are matched loosely in both directions.
      if leagues:
        league = (item.league or "").lower()
        if not league or not any(selected in league or league in selected for selected in leagues):
          continue
      start = item.starts_at.timestamp() if item.starts_at else 0.0
      eligible.append(((_STATUS_ORDER[status], start, item.key), item))
    eligible.sort(key=lambda pair: pair[0])
    return [item for _, item in eligible]

  def rank_stocks(self, items: Sequence[StockQuote], job: JobRecord, local_date: date) -> list[StockQuote]:
    """Focus symbols first; on weekends only crypto and index ETFs survive."""
    if is_weekend(local_date):
      items = [item for item in items if is_crypto(item) or item.symbol in INDEX_ETFS]
    focus = [symbol.upper() for symbol in job.stock_symbols]
    ranked = []
    for item in items:
      # Focus symbols keep the order the user chose; others follow by size of move.
      focus_rank = focus.index(item.symbol) if item.symbol in focus else len(focus)
      movement = abs(item.change_percent) if item.change_percent is not None else 0.0
      ranked.append(((focus_rank, -movement, item.symbol), item))
    ranked.sort(key=lambda pair: pair[0])
    return [item for _, item in ranked]
