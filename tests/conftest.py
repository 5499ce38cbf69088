"""Shared test fixtures.

Database fixtures give each test a fresh in-memory SQLite database, wired in as the global
engine, so FastAPI dependencies, services and background jobs all see the
same data.
"""

import sys
from pathlib import Path

# Ensure the project root is first in sys.path
project_root = str(Path(__file__).parent.parent.absolute())
if project_root not in sys.path:
  sys.path.insert(0, project_root)

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from apiinsight.lib.config import Settings
from apiinsight.lib.database import configure_database, create_db_engine, init_db
from apiinsight.lib.distributed_tracing import reset_correlation_id
from apiinsight.lib.metrics import PrometheusMetricsRecorder
from apiinsight.models.api_key import ApiKey

TEST_API_KEY = 'test-key-payments'
OTHER_API_KEY = 'test-key-other-tenant'


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def db_engine():
  """Fresh in-memory SQLite engine with all tables created."""
  engine = create_db_engine('sqlite://')
  init_db(engine)
  configure_database(engine)
  yield engine
  engine.dispose()


@pytest.fixture
def session_factory(db_engine):
  from sqlalchemy.orm import sessionmaker

  return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def test_db_session(session_factory):
  """Session for arranging and asserting on data."""
  session = session_factory()
  yield session
  session.close()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def settings():
  return Settings(database_url='sqlite://', retention_days=30, scheduler_enabled=False)


@pytest.fixture
def metrics_recorder():
  return PrometheusMetricsRecorder()


@pytest.fixture
def app(settings, session_factory, metrics_recorder):
  from apiinsight.app import create_app

  return create_app(settings, session_factory, metrics_recorder)


@pytest.fixture
def client(app):
  with TestClient(app) as test_client:
    yield test_client


@pytest.fixture
def api_key(test_db_session):
  """Active key for tenant '42', project 'payments-api', default retention."""
  key = ApiKey(tenant='42', name='payments-api', environment='prod', key=TEST_API_KEY)
  test_db_session.add(key)
  test_db_session.commit()
  return key


@pytest.fixture
def other_tenant_key(test_db_session):
  key = ApiKey(tenant='7', name='search-api', environment='prod', key=OTHER_API_KEY)
  test_db_session.add(key)
  test_db_session.commit()
  return key


@pytest.fixture
def auth_headers():
  return {'Authorization': f'Bearer {TEST_API_KEY}'}


@pytest.fixture(autouse=True)
def reset_tracing():
  yield
  reset_correlation_id()


# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def hour():
  """A fixed, completed UTC hour used as the aggregation window."""
  return datetime(2026, 10, 16, 14, 0, tzinfo=timezone.utc)
