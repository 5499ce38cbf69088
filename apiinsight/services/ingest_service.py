"""Ingestion service: validates and persists batches of producer events."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apiinsight.lib.database import as_utc
from apiinsight.lib.errors import StorageError, ValidationError
from apiinsight.lib.metrics import MetricsRecorder, NullMetricsRecorder, record_ingested_event
from apiinsight.lib.structured_logger import StructuredLogger, log_event
from apiinsight.models.event import Event
from apiinsight.models.ingest import RawEvent

logger = StructuredLogger(__name__)


def resolve_retention_days(api_key_retention_days: int, global_retention_days: int) -> int:
    """Effective retention for one ingest call.

    A positive per-key value wins but is clamped to the global ceiling when one
    is configured; it can shorten retention, never extend it. Otherwise the
    global default applies. 0 means events never expire.

    Args:
        api_key_retention_days: Retention configured on the API key (0 = unset)
        global_retention_days: Process-wide default and ceiling (0 = disabled)

    Returns:
        Retention in days, 0 for "never expires"
    """
    if api_key_retention_days and api_key_retention_days > 0:
        if global_retention_days > 0:
            return min(api_key_retention_days, global_retention_days)
        return api_key_retention_days
    return max(global_retention_days, 0)


class IngestService:
    """Validates and stores batches of events for one tenant/project.

    Concurrent calls share nothing except the database and the metrics
    recorder passed in by the owning process.
    """

    def __init__(
        self,
        db: Session,
        global_retention_days: int,
        metrics: Optional[MetricsRecorder] = None,
    ):
        """Initialize ingest service.

        Args:
            db: SQLAlchemy database session
            global_retention_days: Global default retention and ceiling
            metrics: Recorder for self-observability counters
        """
        self.db = db
        self.global_retention_days = global_retention_days
        self.metrics = metrics or NullMetricsRecorder()

    def ingest(
        self,
        tenant: str,
        project: str,
        api_key_retention_days: int,
        events: Sequence[RawEvent],
        now: Optional[datetime] = None,
    ) -> int:
        """Validate and persist a batch of events.

        Events without a path are skipped. The accepted events are written in
        a single transaction.

        Args:
            tenant: Owning account id
            project: Project name (the API key's name)
            api_key_retention_days: Retention configured on the API key
            events: Events from the request body
            now: Ingestion time (defaults to current UTC time)

        Returns:
            Number of events persisted

        Raises:
            ValidationError: If no events were provided or none are valid
            StorageError: If the batch could not be written
        """
        if not events:
            raise ValidationError('no events provided')

        now = as_utc(now) if now else datetime.now(timezone.utc)
        retention_days = resolve_retention_days(api_key_retention_days, self.global_retention_days)

        records: List[Event] = []
        skipped = 0
        for raw in events:
            if not raw.path:
                skipped += 1
                continue
            records.append(self._build_event(tenant, project, raw, now, retention_days))

        if skipped:
            logger.debug('Skipped events without path', tenant=tenant, project=project, count=skipped)

        if not records:
            raise ValidationError('no valid events after validation')

        try:
            self.db.add_all(records)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            log_event(
                'ingest.persist_failed',
                level='ERROR',
                context={
                    'tenant': tenant,
                    'project': project,
                    'batch_size': len(records),
                    'error_type': type(e).__name__,
                    'error_message': str(e),
                },
            )
            raise StorageError('failed to persist events') from e

        for raw in events:
            if raw.path:
                self._record_metrics(project, raw)

        logger.info('Events ingested', tenant=tenant, project=project, count=len(records))
        return len(records)

    def _build_event(
        self, tenant: str, project: str, raw: RawEvent, now: datetime, retention_days: int
    ) -> Event:
        created_at = as_utc(raw.timestamp) if raw.timestamp else now
        expires_at = created_at + timedelta(days=retention_days) if retention_days > 0 else None

        return Event(
            created_at=created_at,
            expires_at=expires_at,
            tenant=tenant,
            project=project,
            route=raw.path,
            method=raw.method,
            status=raw.status,
            duration_ms=raw.duration_ms,
            remote_ip=raw.remote_ip,
            attributes=dict(raw.attributes),
        )

    def _record_metrics(self, project: str, raw: RawEvent) -> None:
        # Observability must never fail the ingest path
        try:
            record_ingested_event(
                self.metrics,
                project=project,
                route=raw.path,
                method=raw.method,
                status=raw.status,
                duration_ms=raw.duration_ms,
            )
        except Exception as e:
            logger.warning(f'Failed to record ingest metrics: {e}', project=project)
