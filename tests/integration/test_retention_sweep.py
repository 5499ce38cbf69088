"""Integration tests for the retention sweep."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from apiinsight.lib.errors import StorageError
from apiinsight.models.event import Event
from apiinsight.services.retention_service import RetentionService
from tests.helpers import make_event


def test_sweep_deletes_only_expired_events(session_factory, test_db_session, hour):
  now = hour
  test_db_session.add_all(
    [
      make_event(now - timedelta(days=31), route='/expired', expires_at=now - timedelta(days=1)),
      make_event(now - timedelta(days=29), route='/live', expires_at=now + timedelta(days=1)),
      make_event(now - timedelta(days=400), route='/forever', expires_at=None),
    ]
  )
  test_db_session.commit()

  deleted = RetentionService(session_factory).sweep(now=now)

  assert deleted == 1
  test_db_session.expire_all()
  assert sorted(e.route for e in test_db_session.query(Event).all()) == ['/forever', '/live']


def test_sweep_deletes_events_expiring_exactly_now(session_factory, test_db_session, hour):
  test_db_session.add(make_event(hour - timedelta(days=30), expires_at=hour))
  test_db_session.commit()

  assert RetentionService(session_factory).sweep(now=hour) == 1


def test_sweep_is_a_noop_when_nothing_expired(session_factory, test_db_session, hour):
  test_db_session.add(make_event(hour, expires_at=hour + timedelta(days=30)))
  test_db_session.commit()

  service = RetentionService(session_factory)

  assert service.sweep(now=hour) == 0
  assert service.sweep(now=hour) == 0
  assert test_db_session.query(Event).count() == 1


def test_sweep_failure_raises_storage_error(hour):
  session = MagicMock()
  session.query.side_effect = OperationalError('DELETE FROM events', {}, Exception('database is locked'))

  with pytest.raises(StorageError, match='retention sweep failed'):
    RetentionService(lambda: session).sweep(now=hour)

  session.rollback.assert_called_once()
  session.close.assert_called_once()
