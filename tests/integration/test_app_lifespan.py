"""Integration tests for application startup and shutdown."""

from fastapi.testclient import TestClient

from apiinsight.app import build_background_jobs, create_app
from apiinsight.lib.config import Settings
from apiinsight.models.api_key import ApiKey
from apiinsight.services.api_key_service import INTERNAL_PROJECT, INTERNAL_TENANT, ApiKeyService


def test_internal_key_is_bootstrapped_and_reporter_started(session_factory, metrics_recorder, test_db_session):
  settings = Settings(database_url='sqlite://', internal_api_key='internal-key', scheduler_enabled=False)
  app = create_app(settings, session_factory, metrics_recorder)

  with TestClient(app) as client:
    assert client.get('/healthz').status_code == 200
    assert app.state.self_reporter is not None
    assert app.state.self_reporter.ingest_url == 'http://localhost:8080/v1/events'

  assert app.state.self_reporter is None
  key = test_db_session.query(ApiKey).filter(ApiKey.key == 'internal-key').one()
  assert key.tenant == INTERNAL_TENANT
  assert key.project == INTERNAL_PROJECT
  assert key.active is True


def test_self_reporting_disabled_without_internal_key(client, app):
  assert client.get('/healthz').status_code == 200
  assert app.state.self_reporter is None


def test_scheduler_starts_and_stops_jobs(session_factory, metrics_recorder):
  settings = Settings(
    database_url='sqlite://',
    scheduler_enabled=True,
    aggregation_catchup_hours=1,
    aggregation_interval_seconds=3600,
    retention_interval_seconds=3600,
  )
  app = create_app(settings, session_factory, metrics_recorder)

  with TestClient(app):
    assert [job.name for job in app.state.jobs] == ['aggregation', 'retention']
    tasks = [job._task for job in app.state.jobs]
    assert all(task is not None and not task.done() for task in tasks)

  assert all(job._task is None for job in app.state.jobs)


def test_build_background_jobs_uses_configured_intervals(session_factory):
  settings = Settings(aggregation_interval_seconds=120, retention_interval_seconds=600)

  aggregation, retention = build_background_jobs(settings, session_factory)

  assert aggregation.interval_seconds == 120
  assert retention.interval_seconds == 600
  assert aggregation.on_start is not aggregation.tick
  assert retention.on_start is retention.tick


# ============================================================================
# ApiKeyService
# ============================================================================


def test_ensure_internal_key_reassigns_existing_row(test_db_session):
  test_db_session.add(ApiKey(tenant='42', name='payments-api', key='shared-token', active=False))
  test_db_session.commit()

  key = ApiKeyService(test_db_session).ensure_internal_key('shared-token', retention_days=30)

  assert key.tenant == INTERNAL_TENANT
  assert key.name == INTERNAL_PROJECT
  assert key.active is True
  assert test_db_session.query(ApiKey).count() == 1


def test_ensure_internal_key_is_noop_without_token(test_db_session):
  assert ApiKeyService(test_db_session).ensure_internal_key('', retention_days=30) is None
  assert test_db_session.query(ApiKey).count() == 0


def test_find_active_ignores_inactive_keys(test_db_session, api_key):
  test_db_session.add(ApiKey(tenant='42', name='old', key='revoked', active=False))
  test_db_session.commit()
  service = ApiKeyService(test_db_session)

  assert service.find_active('test-key-payments').project == 'payments-api'
  assert service.find_active('revoked') is None
  assert service.find_active('') is None
