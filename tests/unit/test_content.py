from __future__ import annotations

from datetime import UTC, date, datetime

from app.briefing.content import (
  ContentSnapshot,
  NewsItem,
  SportsEvent,
  StockQuote,
  Unparsed,
  dedupe,
  extract_entries,
  normalize_url,
  parse_datetime,
  parse_snapshot,
)


def test_normalize_url_collapses_tracking_variants() -> None:
  assert normalize_url("http://www.Example.com/story/1/?utm_source=feed#top") == "https://example.com/story/1"
  assert normalize_url("https://example.com/story/1") == "https://example.com/story/1"
  assert normalize_url("not a url") is None


def test_news_key_prefers_url_then_title() -> None:
  with_url = NewsItem(source="AP", title="Storm Nears Coast", url="https://www.apnews.com/a?x=1")
  without_url = NewsItem(source="AP", title="  Storm nears coast! ")
  assert with_url.key == "https://apnews.com/a"
  assert without_url.key == "storm nears coast"


def test_sports_and_stock_keys() -> None:
  assert SportsEvent(source="espn", home_team="Bulls", away_team="Heat", event_id="401").key == "id:401"
  assert SportsEvent(source="espn", home_team="Bulls", away_team="Heat", event_date=date(2026, 10, 19)).key == "bulls|heat|2026-10-19"
  assert StockQuote(source="yahoo", symbol="aapl").key == "AAPL"


def test_extract_entries_accepts_known_shapes() -> None:
  assert extract_entries("news", [{"title": "a"}]) == [{"title": "a"}]
  assert extract_entries("news", {"articles": [{"title": "b"}]}) == [{"title": "b"}]
  assert extract_entries("sports", {"compact": {"sports": [{"id": 1}]}, "events": []}) == [{"id": 1}]
  assert extract_entries("stocks", {"quotes": [{"symbol": "SPY"}]}) == [{"symbol": "SPY"}]
  assert extract_entries("news", {"unexpected": True}) is None
  assert extract_entries("news", "plain text") is None


def test_parse_snapshot_builds_variants() -> None:
  snapshot = ContentSnapshot(
    content_type="news",
    source="newsapi",
    data={
      "articles": [
        {"title": "Council passes budget", "url": "https://example.com/budget", "source": {"name": "Reuters"}, "publishedAt": "2026-10-19T09:00:00Z", "category": "politics"},
        {"headline": "", "url": "https://example.com/empty"},
        "not-a-mapping",
      ]
    },
  )
  items = parse_snapshot(snapshot)
  assert len(items) == 1
  item = items[0]
  assert isinstance(item, NewsItem)
  assert item.source == "Reuters"
  assert item.category == "politics"
  assert item.published_at == datetime(2026, 10, 19, 9, 0, tzinfo=UTC)


def test_unknown_payload_shape_becomes_unparsed() -> None:
  snapshot = ContentSnapshot(content_type="stocks", source="mystery", data={"payload": "???"})
  (result,) = parse_snapshot(snapshot)
  assert isinstance(result, Unparsed)
  assert result.source == "mystery"


def test_parse_sports_and_stocks_entries() -> None:
  sports = ContentSnapshot(
    content_type="sports",
    source="espn",
    data={"events": [{"id": 7, "homeTeam": {"displayName": "Austin FC"}, "awayTeam": {"displayName": "LA Galaxy"}, "status": {"type": {"name": "STATUS_FINAL"}}, "date": "2026-10-18", "homeScore": 2, "awayScore": 1, "league": "MLS"}]},
  )
  (event,) = parse_snapshot(sports)
  assert isinstance(event, SportsEvent)
  assert event.home_team == "Austin FC"
  assert event.status == "STATUS_FINAL"
  assert event.event_date == date(2026, 10, 18)
  assert event.home_score == "2"

  stocks = ContentSnapshot(content_type="stocks", source="yahoo", data=[{"symbol": "btc-usd", "price": "67,000.5", "changePercent": "-2.5%", "quoteType": "CRYPTOCURRENCY"}])
  (quote,) = parse_snapshot(stocks)
  assert isinstance(quote, StockQuote)
  assert quote.symbol == "BTC-USD"
  assert quote.price == 67000.5
  assert quote.change_percent == -2.5
  assert quote.quote_type == "cryptocurrency"


def test_parse_datetime_variants() -> None:
  assert parse_datetime("2026-10-19T08:00:00Z") == datetime(2026, 10, 19, 8, 0, tzinfo=UTC)
  assert parse_datetime(1_700_000_000) == datetime.fromtimestamp(1_700_000_000, tz=UTC)
  assert parse_datetime(1_700_000_000_000) == datetime.fromtimestamp(1_700_000_000, tz=UTC)
  assert parse_datetime("yesterday") is None
  assert parse_datetime(None) is None


def test_dedupe_keeps_first_occurrence() -> None:
  first = NewsItem(source="AP", title="Storm nears coast", url="https://apnews.com/storm")
  duplicate = NewsItem(source="Blog", title="Storm nears coast (copy)", url="http://www.apnews.com/storm/?ref=rss")
  other = NewsItem(source="AP", title="Markets rally")
  assert dedupe([first, duplicate, other]) == [first, other]
