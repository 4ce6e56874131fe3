"""
app/main.py

FastAPI entrypoint for the savings analyzer.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

logger = logging.getLogger(__name__)

CONTINUATION_MODES = ("background", "http")


def _validate_env() -> None:
    """
    Check configuration before serving. Every problem is reported in one
    RuntimeError so all of them can be fixed in a single restart.
    """

    from app.config import get_embedding_settings, get_matching_settings, get_orchestrator_settings
    from db.config import resolve_database_url

    errors: list[str] = []

    try:
        resolve_database_url()
    except RuntimeError as exc:
        errors.append(str(exc))

    orchestrator = get_orchestrator_settings()
    if orchestrator.continuation_mode not in CONTINUATION_MODES:
        errors.append(
            f"JOB_CONTINUATION_MODE={orchestrator.continuation_mode!r} is not one of {list(CONTINUATION_MODES)}."
        )
    if orchestrator.continuation_mode == "http" and not orchestrator.continuation_token:
        logger.warning("HTTP continuation is enabled without JOB_CONTINUATION_TOKEN; chunk endpoint is unauthenticated")

    embeddings = get_embedding_settings()
    ai_enabled = get_matching_settings().ai_enabled
    if (embeddings.enabled or ai_enabled) and not embeddings.api_key:
        errors.append(
            "OPENAI_API_KEY is not set but semantic or AI matching is enabled. "
            "Set OPENAI_API_KEY, or set EMBEDDING_ENABLED=false and MATCH_AI_ENABLED=false."
        )

    if errors:
        raise RuntimeError("Invalid configuration:\n" + "\n".join(f"  - {error}" for error in errors))


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_database() -> None:
    """
    Connectivity, the pgvector extension and every mapped table. Nothing is
    migrated here; a missing table means ``alembic upgrade head`` was not run.
    """

    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    import db.models  # noqa: F401  registers ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    try:
        with get_engine().connect() as connection:
            has_vector = connection.execute(
                text("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
            ).first()
            tables = set(sa_inspect(connection).get_table_names())
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc

    if has_vector is None:
        logger.warning("pgvector extension is not installed; semantic matching will fail over to a tier miss")

    missing = sorted(set(Base.metadata.tables) - tables)
    if missing:
        logger.critical("Missing tables: %s. Run 'alembic upgrade head' and restart.", ", ".join(missing))
        raise RuntimeError(f"Database schema is missing {len(missing)} table(s): {', '.join(missing)}.")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _check_database()
    logger.info("Database connectivity and schema confirmed")
    yield


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Savings Analyzer API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import savings_jobs_router

    application.include_router(savings_jobs_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
