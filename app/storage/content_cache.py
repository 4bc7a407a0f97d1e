"""Read access to cached upstream content."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.briefing.content import CONTENT_TYPES, ContentSnapshot, ContentType
from app.core.database import get_session_factory
from app.schema.jobs import ContentCacheEntry

logger = logging.getLogger(__name__)

CURATED_SOURCE = "top_ten_ai_curated"
PREFERRED_ROW_LIMIT = 20


class ContentCache(Protocol):
  """Returns cached content snapshots for the requested content types."""

  async def fetch(self, content_types: Sequence[ContentType]) -> list[ContentSnapshot]:
    """Fetch non-expired snapshots; never raises for a single missing type."""


class PostgresContentCache(ContentCache):
  """Reads the ``content_cache`` table.

  The preferred tier returns AI-curated rows plus the compact arrays of every
  fresh row. When that tier errors or is empty, the latest row per source is
  used instead.
  """

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def fetch(self, content_types: Sequence[ContentType]) -> list[ContentSnapshot]:
    snapshots: list[ContentSnapshot] = []
    for content_type in content_types:
      if content_type not in CONTENT_TYPES:
        logger.warning("Ignoring unknown content type %r", content_type)
        continue
      snapshots.extend(await self._fetch_type(content_type))
    return snapshots

  async def _fetch_type(self, content_type: ContentType) -> list[ContentSnapshot]:
    async with self._session_factory() as session:
      try:
        preferred = await self._fetch_preferred(session, content_type)
      except SQLAlchemyError as exc:
        logger.warning("Preferred content tier unavailable for %s: %s", content_type, exc)
        await session.rollback()
        preferred = []
      if preferred:
        return preferred
      return await self._fetch_latest_per_source(session, content_type)

  async def _fetch_preferred(self, session: AsyncSession, content_type: ContentType) -> list[ContentSnapshot]:
    compact = ContentCacheEntry.data["compact"][content_type]
    stmt = (
      select(ContentCacheEntry)
      .where(
        ContentCacheEntry.content_type == content_type,
        ContentCacheEntry.expires_at > func.now(),
        or_(ContentCacheEntry.source == CURATED_SOURCE, compact.isnot(None)),
      )
      .order_by(ContentCacheEntry.created_at.desc())
      .limit(PREFERRED_ROW_LIMIT)
    )
    rows = (await session.execute(stmt)).scalars().all()
    snapshots: list[ContentSnapshot] = []
    # Curated rows lead so their items win deduplication.
    for row in sorted(rows, key=lambda entry: entry.source != CURATED_SOURCE):
      if row.source == CURATED_SOURCE:
        snapshots.append(ContentSnapshot(content_type=content_type, source=row.source, data=row.data, fetched_at=row.created_at, curated=True))
        continue
      compact_items = (row.data.get("compact") or {}).get(content_type)
      if compact_items:
        snapshots.append(ContentSnapshot(content_type=content_type, source=row.source, data={"compact": {content_type: compact_items}}, fetched_at=row.created_at))
    return snapshots

  async def _fetch_latest_per_source(self, session: AsyncSession, content_type: ContentType) -> list[ContentSnapshot]:
    stmt = (
      select(ContentCacheEntry)
      .where(ContentCacheEntry.content_type == content_type, ContentCacheEntry.expires_at > func.now())
      .order_by(ContentCacheEntry.source, ContentCacheEntry.created_at.desc())
      .distinct(ContentCacheEntry.source)
    )
    rows = (await session.execute(stmt)).scalars().all()
    return [ContentSnapshot(content_type=content_type, source=row.source, data=row.data, fetched_at=row.created_at) for row in rows]
