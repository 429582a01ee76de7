"""
Database connection settings for the wellness lending system.
Provides SQLAlchemy session management and connection pooling.
"""

import time
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wellness_lending.config.logging import get_logger
from wellness_lending.config.settings import Settings, get_settings

logger = get_logger(__name__)

SLOW_QUERY_SECONDS = 0.5


def create_db_engine(database_url: Optional[str] = None, settings: Optional[Settings] = None) -> Engine:
    """
    Build an engine for the configured database.

    In-memory SQLite needs a single shared connection, file SQLite needs
    ``check_same_thread`` disabled for the FastAPI threadpool, anything else
    gets the regular connection pool.
    """
    settings = settings or get_settings()
    url = database_url or settings.DATABASE_URL

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}, "echo": settings.DB_ECHO}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)

    return create_engine(
        url,
        pool_pre_ping=True,  # Check connection before using it
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_POOL_OVERFLOW,
        pool_recycle=3600,
        echo=settings.DB_ECHO,
    )


@event.listens_for(Engine, "before_cursor_execute")
def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log query execution time - start timer"""
    conn.info.setdefault("query_start_time", []).append(time.time())


@event.listens_for(Engine, "after_cursor_execute")
def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log query execution time - stop timer and log if slow query"""
    total_time = time.time() - conn.info["query_start_time"].pop()
    if total_time > SLOW_QUERY_SECONDS:
        logger.warning(f"Slow query detected ({total_time:.4f}s): {statement[:100]}...")


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores foreign keys unless asked per connection."""
    module = type(dbapi_connection).__module__
    if module.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_db_engine()

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all tables. Intended for development and tests."""
    import wellness_lending.models  # noqa: F401  (registers mappers)
    from wellness_lending.models.base import Base

    Base.metadata.create_all(bind=bind or engine)


def get_db_session() -> Generator[Session, None, None]:
    """Get database session with automatic cleanup"""
    session = SessionLocal()
    try:
        yield session
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """Context manager for database sessions"""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as e:
        logger.error(f"Database context error: {str(e)}")
        session.rollback()
        raise
    finally:
        session.close()
