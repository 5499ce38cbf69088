"""Metrics endpoints: per-project Prometheus exposition and bucket series."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy.orm import Session

from apiinsight.lib.auth import get_api_key, get_api_key_from_query
from apiinsight.lib.database import get_db_session
from apiinsight.lib.metrics import render_project_metrics
from apiinsight.models.api_key import ApiKey
from apiinsight.services.bucket_query_service import BucketQueryService, parse_range

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/v1/metrics', tags=['Metrics'])


@router.get('')
def project_metrics(request: Request, api_key: ApiKey = Depends(get_api_key_from_query)):
  """Prometheus text exposition limited to the key's project."""
  registry = request.app.state.metrics_recorder.registry
  return Response(
    content=render_project_metrics(registry, api_key.project),
    media_type=CONTENT_TYPE_LATEST,
    headers={'Cache-Control': 'no-store'},
  )


@router.get('/error-rate')
def error_rate(
  project: Optional[str] = None,
  hours: Optional[float] = Query(None, gt=0),
  days: Optional[int] = Query(None, gt=0),
  api_key: ApiKey = Depends(get_api_key),
  db: Session = Depends(get_db_session),
):
  """Hourly error rate for the caller's tenant."""
  cutoff = parse_range(hours, days)
  return {'series': BucketQueryService(db).error_rate_series(api_key.tenant, cutoff, project)}


@router.get('/latency-percentiles')
def latency_percentiles(
  project: Optional[str] = None,
  hours: Optional[float] = Query(None, gt=0),
  days: Optional[int] = Query(None, gt=0),
  api_key: ApiKey = Depends(get_api_key),
  db: Session = Depends(get_db_session),
):
  """Hourly p50/p95/p99 durations for the caller's tenant."""
  cutoff = parse_range(hours, days)
  return {
    'series': BucketQueryService(db).latency_percentile_series(api_key.tenant, cutoff, project)
  }
