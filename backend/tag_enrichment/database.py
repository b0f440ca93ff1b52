"""Database connection and session management."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from typing import Optional
from tag_enrichment.config import settings

# Base class for models
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """
    Get the process-wide engine, creating it on first use.

    Pool sizing only applies to server databases; SQLite uses its own pool.
    """
    global _engine

    if _engine is None:
        engine_kwargs = {
            "pool_pre_ping": True,  # Verify connections before using
            "echo": settings.DEBUG  # Log SQL queries in debug mode
        }
        if not settings.is_sqlite:
            engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
            engine_kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW

        _engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

    return _engine


def get_session_factory() -> sessionmaker:
    """Session factory bound to the process-wide engine."""
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())

    return _session_factory


def init_db(engine: Optional[Engine] = None):
    """Initialize database - create all tables."""
    # Import all models here to ensure they're registered with Base
    from tag_enrichment.models import streamer  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
