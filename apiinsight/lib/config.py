"""Process-wide configuration loaded from environment variables.

Values come from the environment, optionally seeded from ``.env`` and
``.env.local`` in the working directory. Invalid numeric values fall back to
their defaults with a warning rather than aborting startup.
"""

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


def _env_int(key: str, default: int, minimum: int = 0) -> int:
  raw = os.getenv(key)
  if raw is None or raw.strip() == '':
    return default
  try:
    value = int(raw)
  except ValueError:
    logger.warning(f'Ignoring non-integer {key}={raw!r}, using default {default}')
    return default
  if value < minimum:
    logger.warning(f'Ignoring {key}={value} (minimum {minimum}), using default {default}')
    return default
  return value


def _env_bool(key: str, default: bool) -> bool:
  return os.getenv(key, str(default)).lower() in ('true', '1', 'yes', 'on')


class Settings(BaseModel):
  """Runtime configuration for the service."""

  database_url: str = Field(default='sqlite:///./apiinsight.db')

  # Global default retention and ceiling for per-key retention. 0 disables expiry.
  retention_days: int = Field(default=DEFAULT_RETENTION_DAYS, ge=0)

  # Bearer token used for self-reporting; empty disables it.
  internal_api_key: str = Field(default='')
  listen_addr: str = Field(default=':8080')

  scheduler_enabled: bool = Field(default=True)
  aggregation_interval_seconds: int = Field(default=3600, ge=1)
  aggregation_catchup_hours: int = Field(default=24, ge=0)
  retention_interval_seconds: int = Field(default=86400, ge=1)

  log_level: str = Field(default='INFO')

  @property
  def self_reporting_enabled(self) -> bool:
    return bool(self.internal_api_key)

  @property
  def internal_ingest_url(self) -> str:
    """URL of this instance's own ingest endpoint."""
    if not self.listen_addr or self.listen_addr.startswith(':'):
      return f'http://localhost{self.listen_addr}/v1/events'
    return f'http://{self.listen_addr}/v1/events'


def load_settings() -> Settings:
  """Build settings from the environment (after loading .env files)."""
  load_dotenv('.env')
  load_dotenv('.env.local')

  return Settings(
    database_url=os.getenv('APP_DATABASE_URL') or 'sqlite:///./apiinsight.db',
    retention_days=_env_int('APP_RETENTION_DAYS', DEFAULT_RETENTION_DAYS),
    internal_api_key=os.getenv('APP_INTERNAL_API_KEY', '').strip(),
    listen_addr=os.getenv('APP_LISTEN_ADDR', ':8080'),
    scheduler_enabled=_env_bool('SCHEDULER_ENABLED', True),
    aggregation_interval_seconds=_env_int('AGGREGATION_INTERVAL_SECONDS', 3600, minimum=1),
    aggregation_catchup_hours=_env_int('AGGREGATION_CATCHUP_HOURS', 24),
    retention_interval_seconds=_env_int('RETENTION_INTERVAL_SECONDS', 86400, minimum=1),
    log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
  )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Cached process settings (FastAPI dependency)."""
  return load_settings()
