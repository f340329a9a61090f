"""
app/services/scraper_runtime.py

Process-wide scraping runtime: executor, result store and scheduler.

Built lazily and cached so the API, the lifespan hook and the CLIs share
one in-flight registry per process.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import lru_cache

from app.config import get_scheduler_settings
from app.scheduler.jobs import ScraperScheduler
from app.scraping.config import get_scraper_runtime_settings
from app.scraping.engine import RunExecutor
from app.scraping.errors import ExtractionError
from app.scraping.logging_utils import log_event
from app.scraping.session import RunDeadline, open_portal_session
from app.scraping.storage import ResultStore, SQLAlchemyResultStore
from db.session import get_session_factory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScraperStatus:
    operational: bool
    session_backend: str
    detail: str
    duration_ms: int


@lru_cache(maxsize=1)
def get_result_store() -> ResultStore:
    return SQLAlchemyResultStore(session_factory=get_session_factory())


@lru_cache(maxsize=1)
def get_run_executor() -> RunExecutor:
    return RunExecutor(settings=get_scraper_runtime_settings())


@lru_cache(maxsize=1)
def get_scraper_scheduler() -> ScraperScheduler:
    """
    Build and cache the scheduler shared by the tick job and on-demand runs.
    """

    return ScraperScheduler(
        session_factory=get_session_factory(),
        executor=get_run_executor(),
        store=get_result_store(),
        settings=get_scheduler_settings(),
    )


def probe_scraper_status() -> ScraperStatus:
    """
    Acquire and release one session to prove the backend can start.
    """

    settings = get_scraper_runtime_settings()
    started = time.monotonic()
    deadline = RunDeadline(settings.navigation_timeout_seconds)
    try:
        session = open_portal_session(settings, deadline)
        session.close()
    except ExtractionError as exc:
        log_event(
            logger,
            logging.ERROR,
            "scraper_status_probe_failed",
            backend=settings.session_backend,
            error_type=exc.error_type,
            error=exc.message,
        )
        return ScraperStatus(
            operational=False,
            session_backend=settings.session_backend,
            detail=exc.message,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    return ScraperStatus(
        operational=True,
        session_backend=settings.session_backend,
        detail="Session backend started and closed successfully.",
        duration_ms=int((time.monotonic() - started) * 1000),
    )
