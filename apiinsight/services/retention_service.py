"""Retention sweep: deletes events whose expiry has passed."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from apiinsight.lib.database import SessionFactory
from apiinsight.lib.errors import StorageError
from apiinsight.lib.structured_logger import StructuredLogger, log_event
from apiinsight.models.event import Event

logger = StructuredLogger(__name__)


class RetentionService:
    """Deletes expired events. Events with a NULL expires_at are never touched."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def sweep(self, now: Optional[datetime] = None) -> int:
        """Delete all events with expires_at <= now.

        Args:
            now: Cutoff instant (defaults to current UTC time)

        Returns:
            Number of events deleted

        Raises:
            StorageError: If the delete fails (retried on the next scheduled run)
        """
        now = now or datetime.now(timezone.utc)

        session = self.session_factory()
        try:
            deleted = (
                session.query(Event)
                .filter(Event.expires_at.isnot(None), Event.expires_at <= now)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f'retention sweep failed: {e}') from e
        finally:
            session.close()

        log_event('retention.sweep_completed', context={'deleted': deleted, 'cutoff': now.isoformat()})
        return deleted
