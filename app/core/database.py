"""Async engine and session factory for the briefing job store."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_database_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
  pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _database_url() -> str | None:
  """Return the configured DSN rewritten for the asyncpg driver."""
  dsn = get_database_settings().pg_dsn
  if dsn and dsn.startswith("postgresql://"):
    dsn = dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
  return dsn


DATABASE_URL = _database_url()


def get_db_engine() -> AsyncEngine | None:
  global _engine
  if _engine is None:
    database_url = _database_url()
    if not database_url:
      return None
    settings = get_database_settings()
    _engine = create_async_engine(database_url, echo=settings.debug, pool_pre_ping=True, connect_args={"timeout": settings.pg_connect_timeout})
  return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
  """Return the shared session factory, failing loudly when no DSN is configured."""
  global _session_factory
  if _session_factory is None:
    engine = get_db_engine()
    if engine is None:
      raise RuntimeError("Database connection is not configured (DAYSTART_PG_DSN is missing).")
    _session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
  return _session_factory


async def dispose_engine() -> None:
  global _engine, _session_factory
  if _engine is None:
    return
  await _engine.dispose()
  logger.info("Database engine disposed")
  _engine = None
  _session_factory = None
