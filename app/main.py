"""
app/main.py

FastAPI entry point for the usage collector.

Startup order: validate env, configure logging, then (in the lifespan) prove
the database is reachable and migrated before the scheduler tick starts.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.schemas.scrapers import HealthResponse

logger = logging.getLogger(__name__)

_FLOAT_SETTINGS = (
    "SCRAPER_NAVIGATION_TIMEOUT_SECONDS",
    "SCRAPER_RUN_TIMEOUT_SECONDS",
    "SCRAPER_BACKOFF_INITIAL_SECONDS",
    "SCRAPER_BACKOFF_MULTIPLIER",
)
_INT_SETTINGS = (
    "SCRAPER_MAX_RETRIES",
    "SCHEDULER_TICK_SECONDS",
    "SCHEDULER_MAX_WORKERS",
    "SCHEDULER_AUTH_FAILURE_THRESHOLD",
)


def _validate_env() -> None:
    """
    Validate the environment before any service or connection is built.

    Collects every problem into one RuntimeError so the operator can fix
    them in a single restart cycle:
    - some database URL must be configured;
    - SCRAPER_SESSION_BACKEND, when set, must name a known backend;
    - numeric scraper and scheduler settings, when set, must parse.

    Portal credentials are not checked here: a missing profile
    fails only the configs that use it, as an authentication result.
    """

    from app.scraping.config.models import SessionBackend
    from db.config import load_env_files

    load_env_files()
    errors: list[str] = []

    if not any(
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ):
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
            "or LOCAL_DATABASE_URL."
        )

    backend = os.getenv("SCRAPER_SESSION_BACKEND")
    if backend is not None and backend.strip().lower() not in SessionBackend.ALL:
        errors.append(
            f"SCRAPER_SESSION_BACKEND='{backend.strip()}' is not valid. "
            f"Allowed values: {sorted(SessionBackend.ALL)}."
        )

    for name, parse, kind in (
        *((name, float, "a number") for name in _FLOAT_SETTINGS),
        *((name, int, "an integer") for name in _INT_SETTINGS),
    ):
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            parse(raw)
        except ValueError:
            errors.append(f"{name}='{raw}' is not {kind}.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _check_database() -> None:
    """
    Run SELECT 1 and confirm every scraper table exists.

    Does NOT auto-migrate: a missing table aborts startup with a pointer to
    `alembic upgrade head`.
    """

    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine, session_scope

    try:
        with session_scope() as session:
            session.execute(text("SELECT 1"))
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc
    logger.info("Database connectivity confirmed")

    missing = sorted(set(Base.metadata.tables) - set(sa_inspect(get_engine()).get_table_names()))
    if missing:
        logger.critical(
            "Schema mismatch: scraper table(s) %s are absent. Run 'alembic upgrade head' and restart.",
            ", ".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing table(s) {', '.join(missing)}. Run migrations and restart.")
    logger.info("Database schema validated")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Check the database, then run the scheduler tick for the app's lifetime."""
    from app.config import get_scheduler_settings
    from app.scheduler.jobs import build_scheduler
    from app.services.scraper_runtime import get_scraper_scheduler

    _check_database()

    settings = get_scheduler_settings()
    if not settings.enabled:
        logger.info("Scheduler disabled via SCHEDULER_ENABLED; serving API only")
        yield
        return

    scraper_scheduler = get_scraper_scheduler()
    tick = build_scheduler(scraper_scheduler, settings)
    tick.start()
    logger.info(
        "Scheduler started: tick every %ds, %d worker(s)",
        settings.tick_seconds,
        settings.max_workers,
    )
    try:
        yield
    finally:
        # Stop new ticks before draining runs already handed to the pool.
        tick.shutdown(wait=True)
        scraper_scheduler.shutdown(wait=True)
        logger.info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    from app.config import configure_logging, get_scheduler_settings

    _validate_env()
    configure_logging()

    application = FastAPI(
        title="Usage Collector API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import (
        scraper_configs_router,
        scraper_results_router,
        scraper_status_router,
    )

    application.include_router(scraper_configs_router)
    application.include_router(scraper_results_router)
    application.include_router(scraper_status_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        return HealthResponse(status="ok", scheduler_enabled=get_scheduler_settings().enabled)

    return application


app = create_app()
