"""
Database engine and session management.

One engine per process, built lazily from settings. Request handlers get a
short-lived session through the `get_db` dependency.
"""
import logging
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite file databases get their parent directory created and are opened
    with `check_same_thread=False` so FastAPI's threadpool can share them.
    """
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


def get_engine() -> Engine:
    """Get or create the engine singleton."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.database_url)
        logger.info(f"Database engine created for {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory singleton."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def dispose_engine() -> None:
    """Close pooled connections and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


def init_db(engine: Optional[Engine] = None) -> None:
    """Create all tables that don't exist yet."""
    from api.models import Base

    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database tables ensured")


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a session that is closed after the request."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
