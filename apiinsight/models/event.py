from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Column, DateTime, Index, Integer, String, Text

from apiinsight.lib.database import Base


class Event(Base):
    """One observed API call reported by a producer.

    Rows are immutable once written; the retention sweep is the only thing
    that deletes them. ``expires_at`` is NULL for events that never expire.
    """

    __tablename__ = 'events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    expires_at = Column(DateTime(timezone=True), nullable=True)

    tenant = Column(String(255), nullable=False)
    project = Column(String(128), nullable=False)
    route = Column(Text, nullable=False)
    method = Column(Text, nullable=False, default='')
    status = Column(Integer, nullable=False, default=0)
    duration_ms = Column(BigInteger, nullable=False, default=0)
    remote_ip = Column(Text, nullable=False, default='')

    # Custom key/value pairs (plan, region, price...) attached by the producer
    attributes = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index('ix_events_expires_at', 'expires_at'),
        Index('ix_events_tenant_project_created_at', 'tenant', 'project', 'created_at'),
        Index('ix_events_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, tenant='{self.tenant}', project='{self.project}', "
            f"route='{self.route}', status={self.status})>"
        )
