"""Read projections over MetricBucket rows for chart endpoints."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from apiinsight.lib.database import as_utc
from apiinsight.models.metric_bucket import MetricBucket


def parse_range(
    hours: Optional[float], days: Optional[int], now: Optional[datetime] = None
) -> datetime:
    """Cutoff for a ``hours`` (preferred) or ``days`` range; defaults to one day."""
    now = now or datetime.now(timezone.utc)
    if hours is not None and hours > 0:
        return now - timedelta(hours=hours)
    if days is None or days <= 0:
        days = 1
    return now - timedelta(days=days)


def format_bucket(value: datetime) -> str:
    return as_utc(value).strftime('%Y-%m-%dT%H:%M:%SZ')


class BucketQueryService:
    """Tenant-scoped time series read from the hourly buckets."""

    def __init__(self, db: Session):
        self.db = db

    def _buckets(self, tenant: str, cutoff: datetime, project: Optional[str]) -> List[MetricBucket]:
        query = self.db.query(MetricBucket).filter(
            MetricBucket.tenant == tenant,
            MetricBucket.bucket_start >= cutoff.astimezone(timezone.utc),
        )
        if project:
            query = query.filter(MetricBucket.project == project)
        return query.order_by(MetricBucket.bucket_start).all()

    def error_rate_series(
        self, tenant: str, cutoff: datetime, project: Optional[str] = None
    ) -> List[Dict]:
        return [
            {
                'bucket': format_bucket(b.bucket_start),
                'project': b.project,
                'error_rate': b.error_rate,
                'total': b.total_count,
                'errors': b.error_count,
            }
            for b in self._buckets(tenant, cutoff, project)
        ]

    def latency_percentile_series(
        self, tenant: str, cutoff: datetime, project: Optional[str] = None
    ) -> List[Dict]:
        return [
            {
                'bucket': format_bucket(b.bucket_start),
                'project': b.project,
                'p50_ms': b.p50_ms,
                'p95_ms': b.p95_ms,
                'p99_ms': b.p99_ms,
            }
            for b in self._buckets(tenant, cutoff, project)
        ]
