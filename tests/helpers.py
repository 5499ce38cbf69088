"""Factories shared by unit and integration tests."""

from datetime import datetime

from apiinsight.models.event import Event


def make_event(created_at: datetime, tenant='42', project='payments-api', status=200, duration_ms=100, **kwargs):
  """Build an Event row for direct insertion."""
  return Event(
    created_at=created_at,
    expires_at=kwargs.pop('expires_at', None),
    tenant=tenant,
    project=project,
    route=kwargs.pop('route', '/checkout'),
    method=kwargs.pop('method', 'POST'),
    status=status,
    duration_ms=duration_ms,
    remote_ip=kwargs.pop('remote_ip', '10.0.0.1'),
    attributes=kwargs.pop('attributes', {}),
  )
