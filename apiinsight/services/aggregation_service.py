"""Hourly aggregation of raw events into MetricBucket rows.

For each completed UTC hour the job reads the hour's events, groups them by
(tenant, project) and writes one bucket per group. Buckets are always fully
recomputed from the raw events, so re-running an hour is idempotent and picks
up events that were backfilled after an earlier run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from apiinsight.lib.database import SessionFactory
from apiinsight.lib.structured_logger import StructuredLogger, log_event
from apiinsight.models.event import Event
from apiinsight.models.metric_bucket import MetricBucket

logger = StructuredLogger(__name__)

ONE_HOUR = timedelta(hours=1)

GroupKey = Tuple[str, str]


def hour_floor(value: datetime) -> datetime:
    """Truncate to the start of the UTC hour (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def nearest_rank(sorted_values: Sequence[int], p: int) -> int:
    """Nearest-rank percentile without interpolation.

    Index is ``floor(n * p / 100)`` into the ascending sequence, clamped to
    the last element. An empty sequence yields 0.
    """
    n = len(sorted_values)
    if n == 0:
        return 0
    index = (n * p) // 100
    return sorted_values[min(max(index, 0), n - 1)]


@dataclass(frozen=True)
class BucketStats:
    total_count: int
    error_count: int
    p50_ms: int
    p95_ms: int
    p99_ms: int


def compute_bucket_stats(rows: Iterable[Tuple[int, int]]) -> BucketStats:
    """Statistics for one group of (status, duration_ms) pairs."""
    durations: List[int] = []
    errors = 0
    for status, duration_ms in rows:
        if status >= 400:
            errors += 1
        durations.append(int(duration_ms or 0))
    durations.sort()

    return BucketStats(
        total_count=len(durations),
        error_count=errors,
        p50_ms=nearest_rank(durations, 50),
        p95_ms=nearest_rank(durations, 95),
        p99_ms=nearest_rank(durations, 99),
    )


@dataclass
class AggregationResult:
    bucket_start: datetime
    events: int = 0
    upserted_groups: int = 0
    failed_groups: List[GroupKey] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_groups


class AggregationService:
    """Computes and stores hourly MetricBucket rows.

    Each hour is processed with its own session. A persistence error for one
    (tenant, project) group is logged and rolled back, and the remaining
    groups are still written.
    """

    def __init__(self, session_factory: SessionFactory):
        """Initialize aggregation service.

        Args:
            session_factory: Callable returning a new SQLAlchemy session
        """
        self.session_factory = session_factory
        # First hour not yet covered by catch_up or aggregate_pending_hours
        self._next_hour: Optional[datetime] = None

    def aggregate_hour(self, bucket_start: datetime) -> AggregationResult:
        """Aggregate events with created_at in [bucket_start, bucket_start + 1h).

        Args:
            bucket_start: Any instant inside the hour; truncated to the hour

        Returns:
            AggregationResult with event, upsert and failure counts

        Raises:
            SQLAlchemyError: If the window of events cannot be read
        """
        bucket_start = hour_floor(bucket_start)
        result = AggregationResult(bucket_start=bucket_start)

        session = self.session_factory()
        try:
            groups = self._load_groups(session, bucket_start)
            result.events = sum(len(rows) for rows in groups.values())

            for (tenant, project), rows in groups.items():
                stats = compute_bucket_stats(rows)
                try:
                    self._upsert_bucket(session, tenant, project, bucket_start, stats)
                    result.upserted_groups += 1
                except SQLAlchemyError as e:
                    session.rollback()
                    result.failed_groups.append((tenant, project))
                    logger.error(
                        f'Failed to upsert metric bucket: {e}',
                        exc_info=True,
                        tenant=tenant,
                        project=project,
                        bucket_start=bucket_start.isoformat(),
                    )
        finally:
            session.close()

        log_event(
            'aggregation.hour_completed',
            level='INFO' if result.ok else 'WARNING',
            context={
                'bucket_start': bucket_start.isoformat(),
                'events': result.events,
                'upserted_groups': result.upserted_groups,
                'failed_groups': len(result.failed_groups),
            },
        )
        return result

    def aggregate_previous_hour(self, now: Optional[datetime] = None) -> AggregationResult:
        """Aggregate the most recent fully completed hour."""
        now = now or datetime.now(timezone.utc)
        return self.aggregate_hour(hour_floor(now) - ONE_HOUR)

    def catch_up(self, now: Optional[datetime] = None, hours: int = 24) -> List[AggregationResult]:
        """Aggregate the last ``hours`` completed hours, oldest first.

        A failure for one hour is logged and does not stop the others.
        """
        now = now or datetime.now(timezone.utc)
        current = hour_floor(now)
        return self._aggregate_range(current - hours * ONE_HOUR, current)

    def aggregate_pending_hours(self, now: Optional[datetime] = None) -> List[AggregationResult]:
        """Aggregate every completed hour not yet covered by this service.

        This is the scheduled hourly pass. It starts where the previous pass
        or ``catch_up`` stopped, so a late or delayed tick never leaves a
        completed hour without a bucket. With no previous pass it aggregates
        the previous hour only.
        """
        now = now or datetime.now(timezone.utc)
        current = hour_floor(now)
        first = self._next_hour if self._next_hour is not None else current - ONE_HOUR
        return self._aggregate_range(first, current)

    def _aggregate_range(self, first: datetime, end: datetime) -> List[AggregationResult]:
        results = []
        bucket_start = first
        while bucket_start < end:
            try:
                results.append(self.aggregate_hour(bucket_start))
            except SQLAlchemyError as e:
                logger.error(
                    f'Aggregation failed for hour: {e}',
                    exc_info=True,
                    bucket_start=bucket_start.isoformat(),
                )
            bucket_start += ONE_HOUR
        if self._next_hour is None or end > self._next_hour:
            self._next_hour = end
        return results

    def _load_groups(self, session: Session, bucket_start: datetime) -> Dict[GroupKey, List[Tuple[int, int]]]:
        rows = (
            session.query(Event.tenant, Event.project, Event.status, Event.duration_ms)
            .filter(Event.created_at >= bucket_start, Event.created_at < bucket_start + ONE_HOUR)
            .all()
        )

        groups: Dict[GroupKey, List[Tuple[int, int]]] = {}
        for tenant, project, status, duration_ms in rows:
            groups.setdefault((tenant, project), []).append((status, duration_ms))
        return groups

    def _upsert_bucket(
        self,
        session: Session,
        tenant: str,
        project: str,
        bucket_start: datetime,
        stats: BucketStats,
    ) -> None:
        """Overwrite the bucket for the natural key, inserting it if missing."""
        if self._update_existing(session, tenant, project, bucket_start, stats):
            session.commit()
            return

        session.add(
            MetricBucket(
                tenant=tenant,
                project=project,
                bucket_start=bucket_start,
                total_count=stats.total_count,
                error_count=stats.error_count,
                p50_ms=stats.p50_ms,
                p95_ms=stats.p95_ms,
                p99_ms=stats.p99_ms,
            )
        )
        try:
            session.commit()
        except IntegrityError:
            # Another writer inserted the same (tenant, project, hour) first
            session.rollback()
            if not self._update_existing(session, tenant, project, bucket_start, stats):
                raise
            session.commit()

    def _update_existing(
        self,
        session: Session,
        tenant: str,
        project: str,
        bucket_start: datetime,
        stats: BucketStats,
    ) -> bool:
        existing = (
            session.query(MetricBucket)
            .filter(
                MetricBucket.tenant == tenant,
                MetricBucket.project == project,
                MetricBucket.bucket_start == bucket_start,
            )
            .first()
        )
        if existing is None:
            return False

        existing.total_count = stats.total_count
        existing.error_count = stats.error_count
        existing.p50_ms = stats.p50_ms
        existing.p95_ms = stats.p95_ms
        existing.p99_ms = stats.p99_ms
        return True
