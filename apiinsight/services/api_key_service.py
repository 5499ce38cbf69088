"""API key lookup and bootstrap of the internal self-reporting key."""

from typing import Optional

from sqlalchemy.orm import Session

from apiinsight.lib.structured_logger import StructuredLogger
from apiinsight.models.api_key import ApiKey

logger = StructuredLogger(__name__)

INTERNAL_TENANT = 'internal'
INTERNAL_PROJECT = 'api-insight'


class ApiKeyService:
    """Read access to API keys; key management lives outside this service."""

    def __init__(self, db: Session):
        self.db = db

    def find_active(self, token: str) -> Optional[ApiKey]:
        """Return the active key matching ``token``, or None."""
        if not token:
            return None
        return self.db.query(ApiKey).filter(ApiKey.key == token, ApiKey.active.is_(True)).first()

    def ensure_internal_key(self, token: str, retention_days: int) -> Optional[ApiKey]:
        """Make sure the internal self-reporting key exists and is active.

        An existing row with the same token is reassigned to the internal
        tenant/project. Does nothing when ``token`` is empty.
        """
        if not token:
            return None

        existing = self.db.query(ApiKey).filter(ApiKey.key == token).first()
        if existing is not None:
            if existing.tenant != INTERNAL_TENANT or not existing.active:
                existing.tenant = INTERNAL_TENANT
                existing.name = INTERNAL_PROJECT
                existing.environment = 'internal'
                existing.active = True
                self.db.commit()
            return existing

        api_key = ApiKey(
            tenant=INTERNAL_TENANT,
            name=INTERNAL_PROJECT,
            environment='internal',
            key=token,
            retention_days=retention_days,
            active=True,
        )
        self.db.add(api_key)
        self.db.commit()
        logger.info('Internal API key created', tenant=INTERNAL_TENANT, project=INTERNAL_PROJECT)
        return api_key
