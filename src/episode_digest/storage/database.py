"""Database engine and session management."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .tables import Base

logger = logging.getLogger(__name__)


def create_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite URLs are made usable from worker threads.

    An in-memory SQLite database is bound to one shared connection so every
    session sees the same tables.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, engine: Engine, log: Optional[logging.Logger] = None) -> None:
        self.engine = engine
        self.log = log or logger
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str, log: Optional[logging.Logger] = None) -> "Database":
        safe_url = database_url.split("@")[-1] if "@" in database_url else database_url
        (log or logger).info("Creating database engine for %s", safe_url)
        return cls(create_engine_from_url(database_url), log=log)

    def init_db(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        self.log.info("Database tables created")

    def ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.log.debug("Disposing database engine")
        self.engine.dispose()
