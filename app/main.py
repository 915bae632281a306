from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Fail fast on missing configuration before any connection is opened.

    Raises RuntimeError listing every problem so all of them can be fixed in one restart.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    if not any(
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    ticketmaster_enabled = os.getenv("TICKETMASTER_ENABLED", "false").strip().lower() in {"1", "true", "yes", "on"}
    if ticketmaster_enabled and not os.getenv("TICKETMASTER_API_KEY", "").strip():
        errors.append(
            "TICKETMASTER_API_KEY is not set but TICKETMASTER_ENABLED is true. "
            "Set the key or disable the source with TICKETMASTER_ENABLED=false."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Abort startup when a table known to the ORM is missing from the database.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    actual = set(sa_inspect(get_engine()).get_table_names())
    missing = sorted(set(Base.metadata.tables) - actual)
    if missing:
        logging.getLogger(__name__).critical(
            "Tables missing from the database: %s. Run 'alembic upgrade head' and restart.",
            ", ".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing table(s) {', '.join(missing)}. Run migrations and restart.")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Event Ingestion API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import admin_scrape_router

    application.include_router(admin_scrape_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
