"""
Run executor: wraps one extraction driver invocation in timing, a retry
envelope for infrastructure failures, a hard time budget and error capture.

``RunExecutor.run`` never raises. Every attempt produces exactly one
``RunResult``; infrastructure retries inside the envelope are collapsed into
that single result and counted in ``attempts``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial

from app.scraping.base import ExtractionDriver
from app.scraping.config import ScraperRuntimeSettings
from app.scraping.errors import (
    ExtractionError,
    InfrastructureError,
    NotFoundError,
    RunTimeoutError,
)
from app.scraping.logging_utils import log_event
from app.scraping.session import RunDeadline, open_portal_session
from app.scraping.types import ExtractionResult, RunResult, ScrapeTarget

logger = logging.getLogger(__name__)

DriverFactory = Callable[[ScrapeTarget], ExtractionDriver]

UNEXPECTED_ERROR_TYPE = "unexpected"


def build_portal_driver(target: ScrapeTarget, *, settings: ScraperRuntimeSettings) -> ExtractionDriver:
    from app.scraping.scrapers import UsagePortalDriver

    return UsagePortalDriver(
        target=target,
        session_factory=partial(open_portal_session, settings),
    )


@dataclass
class _AttemptCounter:
    attempts: int = 0


class RunExecutor:
    """
    Executes one run for one target and converts every outcome into a result.
    """

    def __init__(
        self,
        *,
        settings: ScraperRuntimeSettings,
        driver_factory: DriverFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._driver_factory = driver_factory or partial(build_portal_driver, settings=settings)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._abandoned: dict[int, Future[ExtractionResult]] = {}
        self._abandoned_lock = threading.Lock()

    def worker_active(self, config_id: int) -> bool:
        """
        True while a timed-out run for ``config_id`` is still unwinding.

        The worker stops at its next I/O boundary, but until then it may
        hold a portal session, so no new run for the config may start.
        """

        with self._abandoned_lock:
            future = self._abandoned.get(config_id)
            if future is None:
                return False
            if future.done():
                del self._abandoned[config_id]
                return False
            return True

    def run(self, target: ScrapeTarget, *, month: str | None = None) -> RunResult:
        execution_time = self._clock()
        started = time.monotonic()
        counter = _AttemptCounter()

        def finish(**fields: object) -> RunResult:
            return RunResult(
                scraper_config_id=target.config_id,
                execution_time=execution_time,
                duration_ms=int((time.monotonic() - started) * 1000),
                attempts=max(1, counter.attempts),
                **fields,  # type: ignore[arg-type]
            )

        try:
            extraction = self._run_within_budget(target, month, counter)
        except RunTimeoutError:
            log_event(
                logger,
                logging.ERROR,
                "scraper_run_timeout",
                config_id=target.config_id,
                budget_seconds=self._settings.run_timeout_seconds,
            )
            return finish(success=False, error_message="timeout", error_type=RunTimeoutError.error_type)
        except NotFoundError as exc:
            log_event(
                logger,
                logging.INFO,
                "scraper_subject_not_found",
                config_id=target.config_id,
                subject=target.subject_identifier,
            )
            return finish(success=False, error_message=exc.message, error_type=exc.error_type)
        except ExtractionError as exc:
            log_event(
                logger,
                logging.ERROR,
                "scraper_run_failed",
                config_id=target.config_id,
                error_type=exc.error_type,
                error=exc.message,
            )
            return finish(success=False, error_message=exc.message, error_type=exc.error_type)
        except Exception as exc:
            logger.exception("Unexpected failure in scraper run config_id=%s", target.config_id)
            message = f"{type(exc).__name__}: {exc}"
            return finish(success=False, error_message=message, error_type=UNEXPECTED_ERROR_TYPE)

        result = finish(success=True, result_data=extraction.to_payload())
        log_event(
            logger,
            logging.INFO,
            "scraper_run_completed",
            config_id=target.config_id,
            months=len(extraction.records),
            gaps=extraction.gaps,
            attempts=result.attempts,
            duration_ms=result.duration_ms,
        )
        return result

    def _run_within_budget(
        self,
        target: ScrapeTarget,
        month: str | None,
        counter: _AttemptCounter,
    ) -> ExtractionResult:
        deadline = RunDeadline(self._settings.run_timeout_seconds)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"scrape-{target.config_id}")
        try:
            future = pool.submit(self._extract_with_retry, target, month, deadline, counter)
            try:
                return future.result(timeout=deadline.remaining())
            except FutureTimeoutError as exc:
                # The worker aborts at its next I/O boundary and closes its session.
                deadline.cancel()
                with self._abandoned_lock:
                    self._abandoned[target.config_id] = future
                raise RunTimeoutError() from exc
        finally:
            pool.shutdown(wait=False)

    def _extract_with_retry(
        self,
        target: ScrapeTarget,
        month: str | None,
        deadline: RunDeadline,
        counter: _AttemptCounter,
    ) -> ExtractionResult:
        attempt = 0
        while True:
            counter.attempts = attempt + 1
            driver = self._driver_factory(target)
            try:
                return driver.extract(target.subject_identifier, month, deadline=deadline)
            except InfrastructureError as exc:
                last_error = exc

            if attempt >= self._settings.max_retries:
                raise last_error

            backoff_seconds = self._settings.backoff_initial_seconds * (
                self._settings.backoff_multiplier**attempt
            )
            if backoff_seconds >= deadline.remaining():
                raise last_error
            log_event(
                logger,
                logging.WARNING,
                "scraper_run_retry",
                config_id=target.config_id,
                attempt=attempt + 1,
                backoff_seconds=backoff_seconds,
                error=last_error.message,
            )
            deadline.sleep(backoff_seconds)
            attempt += 1
