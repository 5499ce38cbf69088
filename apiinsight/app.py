"""FastAPI application for API Insight."""

import time
from contextlib import asynccontextmanager
from typing import List, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from apiinsight import __version__
from apiinsight.lib.config import Settings, get_settings
from apiinsight.lib.database import SessionFactory, get_session_factory, init_db
from apiinsight.lib.distributed_tracing import set_correlation_id
from apiinsight.lib.errors import ApiInsightError, StorageError
from apiinsight.lib.metrics import PrometheusMetricsRecorder
from apiinsight.lib.scheduler import PeriodicJob
from apiinsight.lib.self_reporting import SelfReporter, build_self_report_event
from apiinsight.lib.structured_logger import StructuredLogger, configure_logging
from apiinsight.routers import router
from apiinsight.services.aggregation_service import AggregationService
from apiinsight.services.api_key_service import ApiKeyService
from apiinsight.services.retention_service import RetentionService

logger = StructuredLogger('apiinsight.app')


def build_background_jobs(settings: Settings, session_factory: SessionFactory) -> List[PeriodicJob]:
  """Aggregation (startup catch-up, then hourly) and retention (startup, then daily)."""
  aggregation = AggregationService(session_factory)
  retention = RetentionService(session_factory)

  return [
    PeriodicJob(
      'aggregation',
      settings.aggregation_interval_seconds,
      tick=aggregation.aggregate_pending_hours,
      on_start=lambda: aggregation.catch_up(hours=settings.aggregation_catchup_hours),
    ),
    PeriodicJob('retention', settings.retention_interval_seconds, tick=retention.sweep),
  ]


def _bootstrap_internal_key(settings: Settings, session_factory: SessionFactory) -> None:
  session = session_factory()
  try:
    ApiKeyService(session).ensure_internal_key(settings.internal_api_key, settings.retention_days)
  except Exception:
    session.rollback()
    logger.warning('Failed to ensure internal API key', exc_info=True)
  finally:
    session.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
  """Start background jobs and self-reporting; stop them on shutdown."""
  settings: Settings = app.state.settings
  session_factory = app.state.session_factory or get_session_factory()

  if settings.database_url.startswith('sqlite'):
    init_db()

  if settings.self_reporting_enabled:
    _bootstrap_internal_key(settings, session_factory)
    app.state.self_reporter = SelfReporter(settings.internal_ingest_url, settings.internal_api_key)
    await app.state.self_reporter.start()

  jobs: List[PeriodicJob] = []
  if settings.scheduler_enabled:
    jobs = build_background_jobs(settings, session_factory)
    for job in jobs:
      job.start()
  app.state.jobs = jobs

  logger.info('API Insight ready', count=len(jobs))
  try:
    yield
  finally:
    for job in jobs:
      await job.stop()
    if app.state.self_reporter is not None:
      await app.state.self_reporter.stop()
      app.state.self_reporter = None
    logger.info('API Insight shutting down')


def create_app(
  settings: Optional[Settings] = None,
  session_factory: Optional[SessionFactory] = None,
  metrics_recorder: Optional[PrometheusMetricsRecorder] = None,
) -> FastAPI:
  """Build the application.

  Args:
      settings: Runtime configuration (defaults to the environment)
      session_factory: Session factory for background jobs (defaults to the global one)
      metrics_recorder: Process-owned recorder (a fresh registry by default)
  """
  settings = settings or get_settings()
  configure_logging(settings.log_level)

  application = FastAPI(
    title='API Insight',
    description='Request-event ingestion with hourly rollups and retention',
    version=__version__,
    lifespan=lifespan,
  )
  application.state.settings = settings
  application.state.session_factory = session_factory
  application.state.metrics_recorder = metrics_recorder or PrometheusMetricsRecorder()
  application.state.self_reporter = None
  application.state.jobs = []

  @application.middleware('http')
  async def request_context(request: Request, call_next):
    """Correlation ID, request logging and self-reporting."""
    correlation_id = request.headers.get('X-Correlation-ID', str(uuid4()))
    set_correlation_id(correlation_id)
    request.state.correlation_id = correlation_id

    start_time = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start_time) * 1000)

    response.headers['X-Correlation-ID'] = correlation_id

    path = request.url.path
    logger.info(
      f'{request.method} {path} -> {response.status_code}',
      endpoint=path,
      status_code=response.status_code,
      duration_ms=duration_ms,
    )

    reporter: Optional[SelfReporter] = request.app.state.self_reporter
    if reporter is not None and reporter.should_report(path):
      remote_ip = request.client.host if request.client else ''
      reporter.submit(
        build_self_report_event(path, request.method, response.status_code, duration_ms, remote_ip)
      )

    return response

  @application.exception_handler(ApiInsightError)
  async def api_insight_error_handler(request: Request, exc: ApiInsightError):
    if isinstance(exc, StorageError):
      logger.error(f'Storage failure: {exc.message}', endpoint=request.url.path)
    return JSONResponse(status_code=exc.status_code, content={'detail': exc.message})

  @application.exception_handler(RequestValidationError)
  async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed payloads are 400 (not FastAPI's default 422)."""
    errors = exc.errors()
    if any(error.get('type') == 'json_invalid' for error in errors):
      return JSONResponse(status_code=400, content={'detail': 'invalid JSON body'})
    return JSONResponse(
      status_code=400,
      content={'detail': 'invalid request payload', 'errors': jsonable_encoder(errors)},
    )

  @application.get('/healthz')
  async def healthz():
    return {'status': 'ok'}

  application.include_router(router)
  return application


app = create_app()
