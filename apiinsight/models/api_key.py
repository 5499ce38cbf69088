from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from apiinsight.lib.database import Base


class ApiKey(Base):
    """Bearer credential used by producers to ingest events.

    Each key belongs to a tenant and names the project its events land in.
    ``retention_days`` of 0 means "use the global default"; positive values
    are clamped to the global ceiling at ingestion time.
    """

    __tablename__ = 'api_keys'

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    tenant = Column(String(255), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    environment = Column(String(32), nullable=False, default='prod')
    key = Column(String(255), nullable=False, unique=True)
    retention_days = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    @property
    def project(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, tenant='{self.tenant}', name='{self.name}')>"
