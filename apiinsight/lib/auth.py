"""Bearer API-key authentication dependencies for FastAPI endpoints."""

from typing import Optional

from fastapi import Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apiinsight.lib.database import get_db_session
from apiinsight.lib.errors import AuthError, StorageError
from apiinsight.models.api_key import ApiKey
from apiinsight.services.api_key_service import ApiKeyService

BEARER_PREFIX = 'Bearer '


def extract_bearer_token(authorization: Optional[str]) -> str:
  """Return the token from an ``Authorization: Bearer <token>`` header.

  Raises:
      AuthError: If the header is missing, not a bearer header, or empty
  """
  if not authorization:
    raise AuthError('missing Authorization header')
  if not authorization.startswith(BEARER_PREFIX):
    raise AuthError('invalid Authorization header')

  token = authorization[len(BEARER_PREFIX):].strip()
  if not token:
    raise AuthError('empty bearer token')
  return token


def _lookup(db: Session, token: str) -> ApiKey:
  try:
    api_key = ApiKeyService(db).find_active(token)
  except SQLAlchemyError as e:
    raise StorageError('database error') from e

  if api_key is None:
    raise AuthError('invalid API key')
  return api_key


def get_api_key(request: Request, db: Session = Depends(get_db_session)) -> ApiKey:
  """Resolve the active API key from the bearer header.

  The key is also stored on ``request.state`` so middleware can log the
  tenant and project.
  """
  token = extract_bearer_token(request.headers.get('Authorization'))
  api_key = _lookup(db, token)
  request.state.tenant = api_key.tenant
  request.state.project = api_key.project
  return api_key


def get_api_key_from_query(
  api_key: Optional[str] = Query(None, alias='api-key'),
  db: Session = Depends(get_db_session),
) -> ApiKey:
  """Resolve the active API key from the ``api-key`` query parameter (scrapers)."""
  if not api_key:
    raise AuthError('missing api-key query parameter')
  return _lookup(db, api_key)
