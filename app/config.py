"""Application configuration loaded from environment variables."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

DEFAULT_TRUSTED_SOURCES: tuple[str, ...] = (
  "associated press",
  "ap news",
  "reuters",
  "bbc news",
  "npr",
  "the new york times",
  "the wall street journal",
  "bloomberg",
  "the washington post",
  "financial times",
  "the guardian",
  "axios",
  "politico",
  "cnbc",
  "abc news",
  "cbs news",
  "nbc news",
  "pbs newshour",
  "espn",
  "top_ten_ai_curated",
)

DEFAULT_LOCALITY_WEIGHTS: dict[str, float] = {"neighborhood": 40.0, "city": 30.0, "county": 20.0, "state": 10.0}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the DayStart briefing worker."""

  environment: str
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  worker_secret: str | None
  worker_batch_size: int
  worker_concurrency: int
  lease_minutes: int
  retry_max_tries: int
  retry_base_delay_seconds: float
  retry_max_delay_seconds: float
  lease_timeout_seconds: float
  llm_timeout_seconds: float
  tts_timeout_seconds: float
  upload_timeout_seconds: float
  openai_api_key: str | None
  openai_base_url: str | None
  script_model: str
  script_temperature: float
  script_input_price_per_1m: float
  script_output_price_per_1m: float
  tts_primary_model: str
  tts_primary_text_price_per_1m: float
  tts_primary_audio_price_per_minute: float
  elevenlabs_api_key: str | None
  elevenlabs_base_url: str
  elevenlabs_model: str
  elevenlabs_price_per_1k_chars: float
  tts_primary_attempts: int
  tts_max_attempts: int
  words_per_minute: int
  chars_per_second: float
  audio_bucket: str
  gcs_storage_host: str | None
  gcp_project_id: str | None
  pg_dsn: str | None
  pg_connect_timeout: int
  trusted_news_sources: tuple[str, ...]
  locality_weights: dict[str, float] = field(hash=False)
  duration_tiers: tuple[tuple[int | None, int, int, int], ...] | None = None


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_json(raw: str | None, default: Any) -> Any:
  if not raw:
    return default
  try:
    return json.loads(raw)
  except json.JSONDecodeError:
    return default


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _non_negative_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value < 0:
    raise ValueError(f"{name} must be zero or a positive number.")
  return value


def _parse_sources(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return DEFAULT_TRUSTED_SOURCES
  sources = [source.strip().lower() for source in raw.split(",") if source.strip()]
  return tuple(sources) or DEFAULT_TRUSTED_SOURCES


def _parse_locality_weights(raw: str | None) -> dict[str, float]:
  parsed = _parse_json(raw, None)
  if not isinstance(parsed, dict):
    return dict(DEFAULT_LOCALITY_WEIGHTS)
  weights = dict(DEFAULT_LOCALITY_WEIGHTS)
  for key, value in parsed.items():
    if key not in weights:
      raise ValueError(f"DAYSTART_LOCALITY_WEIGHTS has unknown level '{key}'.")
    weights[key] = float(value)
  return weights


def _parse_duration_tiers(raw: str | None) -> tuple[tuple[int | None, int, int, int], ...] | None:
  """Parse `[[max_seconds|null, news, sports, stocks], ...]` into tier tuples."""
  parsed = _parse_json(raw, None)
  if not parsed:
    return None
  tiers: list[tuple[int | None, int, int, int]] = []
  for entry in parsed:
    if not isinstance(entry, list) or len(entry) != 4:
      raise ValueError("DAYSTART_DURATION_TIERS entries must be [max_seconds, news, sports, stocks].")
    max_seconds = None if entry[0] is None else int(entry[0])
    tiers.append((max_seconds, int(entry[1]), int(entry[2]), int(entry[3])))
  if tiers[-1][0] is not None:
    raise ValueError("DAYSTART_DURATION_TIERS must end with an open-ended tier (null max_seconds).")
  return tuple(tiers)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("DAYSTART_ENV", "development").lower()
  debug = _parse_bool(os.getenv("DAYSTART_DEBUG"))

  log_max_bytes = _positive_int("DAYSTART_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("DAYSTART_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("DAYSTART_LOG_BACKUP_COUNT must be zero or a positive integer.")

  worker_batch_size = _positive_int("DAYSTART_WORKER_BATCH_SIZE", "5")
  worker_concurrency = _positive_int("DAYSTART_WORKER_CONCURRENCY", "1")
  if worker_concurrency > worker_batch_size:
    raise ValueError("DAYSTART_WORKER_CONCURRENCY must not exceed DAYSTART_WORKER_BATCH_SIZE.")

  tts_primary_attempts = int(os.getenv("DAYSTART_TTS_PRIMARY_ATTEMPTS", "2"))
  tts_max_attempts = _positive_int("DAYSTART_TTS_MAX_ATTEMPTS", "3")
  if tts_primary_attempts < 0 or tts_primary_attempts > tts_max_attempts:
    raise ValueError("DAYSTART_TTS_PRIMARY_ATTEMPTS must be between 0 and DAYSTART_TTS_MAX_ATTEMPTS.")

  return Settings(
    environment=environment,
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("DAYSTART_LOG_HTTP_4XX")),
    worker_secret=_optional_str(os.getenv("DAYSTART_WORKER_SECRET")),
    worker_batch_size=worker_batch_size,
    worker_concurrency=worker_concurrency,
    lease_minutes=_positive_int("DAYSTART_LEASE_MINUTES", "15"),
    retry_max_tries=_positive_int("DAYSTART_RETRY_MAX_TRIES", "3"),
    retry_base_delay_seconds=_non_negative_float("DAYSTART_RETRY_BASE_DELAY_SECONDS", "1.0"),
    retry_max_delay_seconds=_non_negative_float("DAYSTART_RETRY_MAX_DELAY_SECONDS", "30.0"),
    lease_timeout_seconds=_positive_float("DAYSTART_LEASE_TIMEOUT_SECONDS", "15"),
    llm_timeout_seconds=_positive_float("DAYSTART_LLM_TIMEOUT_SECONDS", "90"),
    tts_timeout_seconds=_positive_float("DAYSTART_TTS_TIMEOUT_SECONDS", "120"),
    upload_timeout_seconds=_positive_float("DAYSTART_UPLOAD_TIMEOUT_SECONDS", "60"),
    openai_api_key=_optional_str(os.getenv("OPENAI_API_KEY")),
    openai_base_url=_optional_str(os.getenv("OPENAI_BASE_URL")),
    script_model=(os.getenv("DAYSTART_SCRIPT_MODEL") or "gpt-4o").strip(),
    script_temperature=_non_negative_float("DAYSTART_SCRIPT_TEMPERATURE", "0.5"),
    script_input_price_per_1m=_non_negative_float("DAYSTART_SCRIPT_INPUT_PRICE_PER_1M", "2.50"),
    script_output_price_per_1m=_non_negative_float("DAYSTART_SCRIPT_OUTPUT_PRICE_PER_1M", "10.00"),
    tts_primary_model=(os.getenv("DAYSTART_TTS_PRIMARY_MODEL") or "gpt-4o-mini-tts").strip(),
    tts_primary_text_price_per_1m=_non_negative_float("DAYSTART_TTS_PRIMARY_TEXT_PRICE_PER_1M", "0.60"),
    tts_primary_audio_price_per_minute=_non_negative_float("DAYSTART_TTS_PRIMARY_AUDIO_PRICE_PER_MINUTE", "0.015"),
    elevenlabs_api_key=_optional_str(os.getenv("ELEVENLABS_API_KEY")),
    elevenlabs_base_url=(os.getenv("DAYSTART_ELEVENLABS_BASE_URL") or "https://api.elevenlabs.io").strip(),
    elevenlabs_model=(os.getenv("DAYSTART_ELEVENLABS_MODEL") or "eleven_turbo_v2_5").strip(),
    elevenlabs_price_per_1k_chars=_non_negative_float("DAYSTART_ELEVENLABS_PRICE_PER_1K_CHARS", "0.10"),
    tts_primary_attempts=tts_primary_attempts,
    tts_max_attempts=tts_max_attempts,
    words_per_minute=_positive_int("DAYSTART_WORDS_PER_MINUTE", "145"),
    chars_per_second=_positive_float("DAYSTART_CHARS_PER_SECOND", "15"),
    audio_bucket=(os.getenv("DAYSTART_AUDIO_BUCKET") or "daystart-audio").strip(),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    pg_dsn=os.getenv("DAYSTART_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("DAYSTART_PG_CONNECT_TIMEOUT", "5"),
    trusted_news_sources=_parse_sources(os.getenv("DAYSTART_TRUSTED_NEWS_SOURCES")),
    locality_weights=_parse_locality_weights(os.getenv("DAYSTART_LOCALITY_WEIGHTS")),
    duration_tiers=_parse_duration_tiers(os.getenv("DAYSTART_DURATION_TIERS")),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring worker or provider configuration."""
  debug = _parse_bool(os.getenv("DAYSTART_DEBUG"))
  pg_connect_timeout = _positive_int("DAYSTART_PG_CONNECT_TIMEOUT", "5")

  # Support fallback to DATABASE_URL for hosted Postgres providers.
  pg_dsn = os.getenv("DAYSTART_PG_DSN") or os.getenv("DATABASE_URL")

  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
