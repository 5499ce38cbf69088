from sqlalchemy import BigInteger, Column, DateTime, Integer, String, UniqueConstraint

from apiinsight.lib.database import Base


class MetricBucket(Base):
    """Hourly rollup for one (tenant, project, hour).

    Filled by the aggregation job. Every pass fully recomputes the derived
    fields from the raw events of the hour; values are never merged.

    Columns:
        bucket_start: Start of the UTC hour covered by this row
        total_count: Events in the hour
        error_count: Events with status >= 400
        p50_ms, p95_ms, p99_ms: Nearest-rank duration percentiles
    """

    __tablename__ = 'metric_buckets'

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant = Column(String(255), nullable=False)
    project = Column(String(128), nullable=False)
    bucket_start = Column(DateTime(timezone=True), nullable=False)

    total_count = Column(BigInteger, nullable=False)
    error_count = Column(BigInteger, nullable=False)
    p50_ms = Column(BigInteger, nullable=False)
    p95_ms = Column(BigInteger, nullable=False)
    p99_ms = Column(BigInteger, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            'tenant', 'project', 'bucket_start', name='uq_metric_bucket_tenant_project_start'
        ),
    )

    @property
    def error_rate(self) -> float:
        if not self.total_count:
            return 0.0
        return self.error_count / self.total_count

    def __repr__(self) -> str:
        return (
            f"<MetricBucket(tenant='{self.tenant}', project='{self.project}', "
            f"bucket_start={self.bucket_start}, total_count={self.total_count})>"
        )
