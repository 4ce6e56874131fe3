"""
db/session.py

Lazily created PostgreSQL engine and sessions shared by the job store,
the catalog lookup and the API.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import redact_database_url, resolve_database_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolSettings:
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 1800

    @classmethod
    def from_env(cls) -> "PoolSettings":
        def _int(name: str, default: int) -> int:
            try:
                return int(os.getenv(name, str(default)))
            except ValueError:
                return default

        return cls(
            echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
            pool_size=_int("DB_POOL_SIZE", cls.pool_size),
            max_overflow=_int("DB_MAX_OVERFLOW", cls.max_overflow),
            pool_recycle=_int("DB_POOL_RECYCLE", cls.pool_recycle),
        )


def create_db_engine(pool: PoolSettings | None = None) -> Engine:
    """
    Build the engine. JSONB columns, tsvector search and pgvector distance
    queries need PostgreSQL, so other backends are refused here.
    """

    database_url = resolve_database_url()
    if not database_url.startswith("postgresql"):
        raise RuntimeError(
            f"Unsupported database URL {redact_database_url(database_url)}; PostgreSQL is required."
        )

    pool = pool or PoolSettings.from_env()
    logger.info(
        "Creating database engine url=%s pool_size=%s max_overflow=%s",
        redact_database_url(database_url),
        pool.pool_size,
        pool.max_overflow,
    )
    return create_engine(
        database_url,
        echo=pool.echo,
        pool_pre_ping=True,
        pool_recycle=pool.pool_recycle,
        pool_size=pool.pool_size,
        max_overflow=pool.max_overflow,
    )


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Sessions keep loaded attributes after commit; job rows are read back
    after the transaction that wrote them.
    """

    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _session_factory


def SessionLocal() -> Session:
    return get_session_factory()()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
