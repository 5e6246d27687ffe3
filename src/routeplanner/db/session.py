"""SQLAlchemy engine and session management."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""
    engine = create_engine(database_url, future=True, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


@lru_cache()
def get_engine() -> Engine:
    """Get cached engine for the configured database URL."""
    connect_args = {}
    if settings.database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return build_engine(settings.database_url, connect_args=connect_args)


@lru_cache()
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet."""
    from ..models.orm import Base

    target = engine or get_engine()
    Base.metadata.create_all(bind=target)
    logger.info(f"Database schema ensured on {target.url.render_as_string(hide_password=True)}")


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit the unit of work on success, roll everything back on any error."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def check_database(engine: Engine | None = None) -> bool:
    """Return True when a trivial query succeeds."""
    from sqlalchemy import text

    try:
        with (engine or get_engine()).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.warning(f"Database health check failed: {exc}")
        return False
