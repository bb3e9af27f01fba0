"""
Database base configuration and utilities
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

logger = logging.getLogger(__name__)

# Create declarative base
Base = declarative_base()

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_database_url() -> str:
    """
    Get database URL from the FuelEU configuration

    Returns:
        Database connection URL (``GL_FUELEU_DATABASE_URL``)
    """
    from fueleu.config import get_config

    return get_config().database_url


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def create_db_engine(database_url: str, **kwargs) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL

    Args:
        database_url: Database URL
        **kwargs: Additional engine configuration (pool_size, echo, ...)

    Returns:
        SQLAlchemy Engine
    """
    engine_config = {
        "poolclass": QueuePool,
        "pool_size": kwargs.get("pool_size", 5),
        "max_overflow": kwargs.get("max_overflow", 10),
        "pool_timeout": kwargs.get("pool_timeout", 30),
        "pool_recycle": kwargs.get("pool_recycle", 3600),
        "echo": kwargs.get("echo", False),
    }

    # SQLite-specific configuration
    if database_url.startswith("sqlite"):
        engine_config = {
            "connect_args": {"check_same_thread": False},
            "echo": kwargs.get("echo", False),
        }
        # One shared connection keeps an in-memory database alive
        if _is_memory_sqlite(database_url):
            engine_config["poolclass"] = StaticPool

    engine = create_engine(database_url, **engine_config)

    # Enable foreign keys for SQLite
    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    logger.debug("Created database engine for %s", engine.url.render_as_string(hide_password=True))
    return engine


def get_engine(database_url: Optional[str] = None, **kwargs) -> Engine:
    """
    Get SQLAlchemy engine (singleton)

    Args:
        database_url: Optional database URL (uses configuration if not provided)
        **kwargs: Additional engine configuration

    Returns:
        SQLAlchemy Engine
    """
    global _engine

    if _engine is None:
        _engine = create_db_engine(database_url or get_database_url(), **kwargs)

    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get session factory (singleton)

    The cached factory is rebuilt when it is bound to a different engine
    than the one requested.

    Args:
        engine: Optional SQLAlchemy engine

    Returns:
        Session factory
    """
    global _SessionLocal

    eng = engine or get_engine()
    if _SessionLocal is None or _SessionLocal.kw.get("bind") is not eng:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=eng,
        )

    return _SessionLocal


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transactional session context manager

    Commits on success, rolls back on any exception.

    Args:
        factory: Session factory

    Yields:
        Database session
    """
    session = factory()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None, drop_all: bool = False) -> None:
    """
    Initialize database (create all tables)

    Args:
        engine: Optional SQLAlchemy engine
        drop_all: If True, drop all tables first
    """
    # Register the mapped tables on Base.metadata
    from fueleu.db import models  # noqa: F401

    eng = engine or get_engine()

    if drop_all:
        Base.metadata.drop_all(bind=eng)

    Base.metadata.create_all(bind=eng)
    logger.info("FuelEU database schema initialised (drop_all=%s)", drop_all)


def reset_engine() -> None:
    """Reset engine singleton (useful for testing)"""
    global _engine, _SessionLocal

    if _engine:
        _engine.dispose()
        _engine = None

    _SessionLocal = None
