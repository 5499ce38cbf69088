"""Ingestion endpoint for producer events."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from apiinsight.lib.auth import get_api_key
from apiinsight.lib.config import Settings
from apiinsight.lib.database import get_db_session
from apiinsight.lib.metrics import MetricsRecorder
from apiinsight.models.api_key import ApiKey
from apiinsight.models.ingest import IngestRequest, IngestResponse
from apiinsight.routers.dependencies import get_app_settings, get_metrics_recorder
from apiinsight.services.ingest_service import IngestService

logger = logging.getLogger(__name__)

router = APIRouter(tags=['Ingest'])


@router.post('/v1/events', status_code=202, response_model=IngestResponse)
def ingest_events(
  payload: IngestRequest,
  api_key: ApiKey = Depends(get_api_key),
  db: Session = Depends(get_db_session),
  settings: Settings = Depends(get_app_settings),
  metrics: MetricsRecorder = Depends(get_metrics_recorder),
):
  """Accept a batch of events for the caller's tenant and project.

  Events without a path are skipped; the response count is the number of
  events actually stored.

  Raises:
      ValidationError: 400 when the batch is empty or has no valid events
      AuthError: 401 for a missing or invalid bearer key
      StorageError: 500 when the batch could not be written
  """
  service = IngestService(db, global_retention_days=settings.retention_days, metrics=metrics)
  count = service.ingest(
    tenant=api_key.tenant,
    project=api_key.project,
    api_key_retention_days=api_key.retention_days,
    events=payload.events,
  )
  return IngestResponse(status='accepted', count=count)
