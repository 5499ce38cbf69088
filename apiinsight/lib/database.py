"""Database Connection Module

Provides the SQLAlchemy declarative base, a lazily created global engine and
session helpers. Postgres is used in production (``postgresql+psycopg://``);
SQLite is supported for local development and tests.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from apiinsight.lib.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()

SessionFactory = Callable[[], Session]


def create_db_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
) -> Engine:
    """Create an engine suited to the database URL.

    Args:
        database_url: SQLAlchemy database URL
        pool_size: Number of connections to keep in the pool (Postgres only)
        max_overflow: Connections allowed beyond pool_size (Postgres only)
        pool_pre_ping: Test connections before use to detect stale ones

    Returns:
        Configured SQLAlchemy engine
    """
    if database_url.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if ':memory:' in database_url or database_url in ('sqlite://', 'sqlite:///'):
            # One shared connection so every session sees the same in-memory database
            kwargs['poolclass'] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_recycle=3600,
    )


# Global engine instance (lazy-initialized)
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def get_engine() -> Engine:
    """Get or create the global engine from APP_DATABASE_URL."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(get_settings().database_url)
    return _engine


def get_session_factory() -> sessionmaker:
    """Get the session factory bound to the global engine.

    Usage:
        SessionFactory = get_session_factory()
        with SessionFactory() as session:
            session.query(Event).count()
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def configure_database(engine: Engine) -> sessionmaker:
    """Replace the global engine (used by tests and the CLI)."""
    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return _session_factory


def get_db_session() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection.

    Services commit their own work; anything left pending is rolled back on
    error and the session is always closed.

    Usage (FastAPI):
        @router.post('/v1/events')
        def ingest(db: Session = Depends(get_db_session)):
            ...
    """
    session = get_session_factory()()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables (development and SQLite; production uses Alembic)."""
    import apiinsight.models  # noqa: F401

    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info('Database tables created')


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes; everything this service writes is UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
