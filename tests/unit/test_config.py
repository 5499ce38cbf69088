"""Unit tests for environment-driven settings."""

import pytest

from apiinsight.lib.config import DEFAULT_RETENTION_DAYS, Settings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
  """Run from an empty directory so no .env file leaks into the test."""
  monkeypatch.chdir(tmp_path)
  for key in (
    'APP_DATABASE_URL',
    'APP_RETENTION_DAYS',
    'APP_INTERNAL_API_KEY',
    'APP_LISTEN_ADDR',
    'SCHEDULER_ENABLED',
    'AGGREGATION_INTERVAL_SECONDS',
    'AGGREGATION_CATCHUP_HOURS',
    'RETENTION_INTERVAL_SECONDS',
    'LOG_LEVEL',
  ):
    # Register the key so values loaded from .env files are undone afterwards
    monkeypatch.setenv(key, '')
    monkeypatch.delenv(key)


def test_defaults():
  settings = load_settings()

  assert settings.retention_days == DEFAULT_RETENTION_DAYS == 30
  assert settings.internal_api_key == ''
  assert settings.self_reporting_enabled is False
  assert settings.scheduler_enabled is True
  assert settings.aggregation_interval_seconds == 3600
  assert settings.retention_interval_seconds == 86400
  assert settings.database_url.startswith('sqlite')


def test_values_from_environment(monkeypatch):
  monkeypatch.setenv('APP_DATABASE_URL', 'postgresql+psycopg://app:secret@db:5432/insight')
  monkeypatch.setenv('APP_RETENTION_DAYS', '7')
  monkeypatch.setenv('APP_INTERNAL_API_KEY', ' internal-key ')
  monkeypatch.setenv('APP_LISTEN_ADDR', '0.0.0.0:9000')
  monkeypatch.setenv('SCHEDULER_ENABLED', 'false')
  monkeypatch.setenv('LOG_LEVEL', 'debug')

  settings = load_settings()

  assert settings.database_url == 'postgresql+psycopg://app:secret@db:5432/insight'
  assert settings.retention_days == 7
  assert settings.internal_api_key == 'internal-key'
  assert settings.self_reporting_enabled is True
  assert settings.scheduler_enabled is False
  assert settings.log_level == 'DEBUG'
  assert settings.internal_ingest_url == 'http://0.0.0.0:9000/v1/events'


def test_zero_retention_is_allowed(monkeypatch):
  monkeypatch.setenv('APP_RETENTION_DAYS', '0')

  assert load_settings().retention_days == 0


@pytest.mark.parametrize('raw', ['-1', 'thirty', '3.5'])
def test_invalid_retention_falls_back_to_default(monkeypatch, raw):
  monkeypatch.setenv('APP_RETENTION_DAYS', raw)

  assert load_settings().retention_days == DEFAULT_RETENTION_DAYS


def test_dotenv_file_is_loaded(tmp_path):
  (tmp_path / '.env').write_text('APP_RETENTION_DAYS=14\n')

  assert load_settings().retention_days == 14


def test_internal_ingest_url_for_port_only_listen_addr():
  assert Settings(listen_addr=':8080').internal_ingest_url == 'http://localhost:8080/v1/events'
