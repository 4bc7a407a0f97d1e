"""Typed content variants parsed from cached upstream payloads.

Upstream feeds return loosely shaped JSON. Each known shape has an explicit
parser; anything else becomes ``Unparsed`` so the aggregator can skip it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any, Literal
from urllib.parse import urlsplit, urlunsplit

ContentType = Literal["news", "sports", "stocks"]
CONTENT_TYPES: tuple[ContentType, ...] = ("news", "sports", "stocks")

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]")

# Top-level list keys seen per content type, in lookup order.
_ENTRY_KEYS: dict[str, tuple[str, ...]] = {
  "news": ("articles", "stories", "items", "news"),
  "sports": ("events", "games", "matches", "sports"),
  "stocks": ("quotes", "stocks", "items"),
}


@dataclass(frozen=True)
class ContentSnapshot:
  """One cached payload for a content type as returned by the content cache."""

  content_type: ContentType
  source: str
  data: Any
  fetched_at: datetime | None = None
  curated: bool = False


@dataclass(frozen=True)
class NewsItem:
  source: str
  title: str
  url: str | None = None
  description: str | None = None
  category: str | None = None
  published_at: datetime | None = None
  fetched_at: datetime | None = None

  @property
  def key(self) -> str:
    """Normalized URL when present, otherwise the normalized title."""
    if self.url:
      normalized = normalize_url(self.url)
      if normalized:
        return normalized
    return normalize_title(self.title)

  @property
  def text(self) -> str:
    return f"{self.title} {self.description or ''}".strip()


@dataclass(frozen=True)
class SportsEvent:
  source: str
  home_team: str
  away_team: str
  league: str | None = None
  event_id: str | None = None
  status: str | None = None
  home_score: str | None = None
  away_score: str | None = None
  starts_at: datetime | None = None
  event_date: date | None = None
  fetched_at: datetime | None = None

  @property
  def key(self) -> str:
    if self.event_id:
      return f"id:{self.event_id}"
    day = self.event_date.isoformat() if self.event_date else (self.starts_at.date().isoformat() if self.starts_at else "")
    return f"{normalize_title(self.home_team)}|{normalize_title(self.away_team)}|{day}"


@dataclass(frozen=True)
class StockQuote:
  source: str
  symbol: str
  name: str | None = None
  price: float | None = None
  change: float | None = None
  change_percent: float | None = None
  quote_type: str | None = None
  fetched_at: datetime | None = None

  @property
  def key(self) -> str:
    return self.symbol.upper()


@dataclass(frozen=True)
class Unparsed:
  """Skip branch for payloads that match no known shape."""

  source: str
  content_type: str
  reason: str


ContentItem = NewsItem | SportsEvent | StockQuote
ContentVariant = NewsItem | SportsEvent | StockQuote | Unparsed


def normalize_title(value: str) -> str:
  lowered = _PUNCT_RE.sub(" ", value.lower())
  return _WHITESPACE_RE.sub(" ", lowered).strip()


def normalize_url(value: str) -> str | None:
  """Lower-case scheme and host, drop query and fragment, trim trailing slash."""
  raw = value.strip()
  if not raw:
    return None
  parts = urlsplit(raw)
  if not parts.netloc:
    return None
  host = parts.netloc.lower()
  if host.startswith("www."):
    host = host[4:]
  path = parts.path.rstrip("/")
  return urlunsplit(("https", host, path, "", ""))


def parse_datetime(value: Any) -> datetime | None:
  """Parse ISO-8601 strings or epoch seconds into aware UTC datetimes."""
  if value is None or value == "":
    return None
  if isinstance(value, datetime):
    return value if value.tzinfo else value.replace(tzinfo=UTC)
  if isinstance(value, (int, float)) and not isinstance(value, bool):
    seconds = value / 1000 if value > 1e11 else value
    return datetime.fromtimestamp(seconds, tz=UTC)
  if isinstance(value, str):
    text = value.strip()
    if text.endswith("Z"):
      text = text[:-1] + "+00:00"
    try:
      parsed = datetime.fromisoformat(text)
    except ValueError:
      return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
  return None


def _parse_date(value: Any) -> date | None:
  if isinstance(value, str) and len(value.strip()) == 10:
    try:
      return date.fromisoformat(value.strip())
    except ValueError:
      return None
  return None


def _text(value: Any) -> str | None:
  if value is None:
    return None
  if isinstance(value, Mapping):
    for key in ("name", "displayName", "shortDisplayName", "title"):
      nested = value.get(key)
      if isinstance(nested, str) and nested.strip():
        return nested.strip()
    return None
  text = str(value).strip()
  return text or None


def _first(entry: Mapping[str, Any], *keys: str) -> Any:
  for key in keys:
    value = entry.get(key)
    if value is not None and value != "":
      return value
  return None


def _number(value: Any) -> float | None:
  if value is None or isinstance(value, bool):
    return None
  if isinstance(value, str):
    value = value.strip().rstrip("%").replace(",", "")
  try:
    return float(value)
  except (TypeError, ValueError):
    return None


def extract_entries(content_type: str, data: Any) -> list[Any] | None:
  """Return the raw entry list for a known payload shape, or None."""
  if isinstance(data, list):
    return data
  if not isinstance(data, Mapping):
    return None
  compact = data.get("compact")
  if isinstance(compact, Mapping) and isinstance(compact.get(content_type), list):
    return compact[content_type]
  for key in _ENTRY_KEYS.get(content_type, ()):
    value = data.get(key)
    if isinstance(value, list):
      return value
  return None


def parse_news_entry(entry: Mapping[str, Any], source: str, fetched_at: datetime | None) -> NewsItem | None:
  title = _text(_first(entry, "title", "headline"))
  if not title:
    return None
  outlet = _text(entry.get("source")) or source
  return NewsItem(
    source=outlet,
    title=title,
    url=_text(_first(entry, "url", "link")),
    description=_text(_first(entry, "description", "summary", "content")),
    category=_text(_first(entry, "category", "section", "topic")),
    published_at=parse_datetime(_first(entry, "publishedAt", "published_at", "pubDate")),
    fetched_at=fetched_at,
  )


def _status_text(value: Any) -> str | None:
  if isinstance(value, Mapping):
    status_type = value.get("type")
    if isinstance(status_type, Mapping):
      return _text(_first(status_type, "name", "description", "state"))
    return _text(_first(value, "name", "description", "state", "detail"))
  return _text(value)


def _team(entry: Mapping[str, Any], side: str) -> str | None:
  camel = "homeTeam" if side == "home" else "awayTeam"
  legacy = "strHomeTeam" if side == "home" else "strAwayTeam"
  return _text(_first(entry, f"{side}_team", camel, side, legacy))


def parse_sports_entry(entry: Mapping[str, Any], source: str, fetched_at: datetime | None) -> SportsEvent | None:
  home = _team(entry, "home")
  away = _team(entry, "away")
  if not home or not away:
    return None
  raw_date = _first(entry, "date", "start_time", "startTime", "dateEvent", "scheduled")
  starts_at = None if _parse_date(raw_date) else parse_datetime(raw_date)
  event_id = _first(entry, "id", "event_id", "idEvent")
  return SportsEvent(
    source=source,
    home_team=home,
    away_team=away,
    league=_text(_first(entry, "league", "sport", "strLeague")),
    event_id=str(event_id) if event_id is not None else None,
    status=_status_text(_first(entry, "status", "state", "strStatus")),
    home_score=_text(_first(entry, "home_score", "homeScore", "intHomeScore")),
    away_score=_text(_first(entry, "away_score", "awayScore", "intAwayScore")),
    starts_at=starts_at,
    event_date=_parse_date(raw_date),
    fetched_at=fetched_at,
  )


def parse_stock_entry(entry: Mapping[str, Any], source: str, fetched_at: datetime | None) -> StockQuote | None:
  symbol = _text(_first(entry, "symbol", "ticker"))
  if not symbol:
    return None
  quote_type = _text(_first(entry, "type", "quoteType", "asset_type"))
  return StockQuote(
    source=source,
    symbol=symbol.upper(),
    name=_text(_first(entry, "name", "shortName", "longName")),
    price=_number(_first(entry, "price", "regularMarketPrice", "current")),
    change=_number(_first(entry, "change", "regularMarketChange")),
    change_percent=_number(_first(entry, "change_percent", "changePercent", "percent_change", "regularMarketChangePercent")),
    quote_type=quote_type.lower() if quote_type else None,
    fetched_at=fetched_at,
  )


_ENTRY_PARSERS = {"news": parse_news_entry, "sports": parse_sports_entry, "stocks": parse_stock_entry}


def parse_snapshot(snapshot: ContentSnapshot) -> list[ContentVariant]:
  """Parse one snapshot into content variants.

  Unknown shapes produce a single ``Unparsed`` entry. Entries that are not
  mappings or lack identifying fields are dropped individually.
  """
  parser = _ENTRY_PARSERS.get(snapshot.content_type)
  if parser is None:
    return [Unparsed(source=snapshot.source, content_type=snapshot.content_type, reason="unknown content type")]
  entries = extract_entries(snapshot.content_type, snapshot.data)
  if entries is None:
    return [Unparsed(source=snapshot.source, content_type=snapshot.content_type, reason="unrecognized payload shape")]
  items: list[ContentVariant] = []
  for entry in entries:
    if not isinstance(entry, Mapping):
      continue
    item = parser(entry, snapshot.source, snapshot.fetched_at)
    if item is not None:
      items.append(item)
  return items


def dedupe(items: Iterable[ContentItem]) -> list[ContentItem]:
  """Drop items whose key was already seen; first occurrence wins."""
  seen: set[str] = set()
  unique: list[ContentItem] = []
  for item in items:
    if item.key in seen:
      continue
    seen.add(item.key)
    unique.append(item)
  return unique
