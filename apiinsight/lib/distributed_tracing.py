"""Correlation IDs for request tracing.

Uses contextvars so the ID follows a request through async calls and into
threadpool-run endpoints.
"""

import contextvars
from uuid import uuid4

correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
  'request_id', default='no-request-id'
)


def get_correlation_id() -> str:
  """Current request's correlation ID, or 'no-request-id' outside a request."""
  return correlation_id.get()


def set_correlation_id(request_id: str) -> None:
  correlation_id.set(request_id)


def generate_correlation_id() -> str:
  """Generate a new correlation ID, set it in context and return it.

  Background jobs call this once per pass so their log lines group together.
  """
  request_id = str(uuid4())
  set_correlation_id(request_id)
  return request_id


def reset_correlation_id() -> None:
  correlation_id.set('no-request-id')
