"""
app/scheduler/jobs.py

Scraper scheduling loop.

Tick model
----------
An APScheduler ``BackgroundScheduler`` fires ``ScraperScheduler.tick`` on a
fixed interval (``SCHEDULER_TICK_SECONDS``). Each tick reads schedules from
the database, so config edits and (de)activations made through the API are
observed on the next tick without a restart.

Per schedule the lifecycle is ``Idle -> Due -> Running -> Idle``:

  * Due:      active schedule of an active config with ``next_run <= now``
               (or never run).
  * Running:  the config id is claimed in ``_in_flight``; a later tick that
               finds the same config due again skips it until the run ends.
               The claim is re-checked against the database, and a config
               whose timed-out worker is still unwinding cannot be claimed.
  * Idle:     result persisted, ``last_run`` / ``next_run`` advanced, claim
               released. ``next_run`` advances on failure too.

Runs for different configs execute in parallel on a worker pool. Custom
schedules with an unparsable cron expression are deactivated instead of
retried every tick; configs whose login is rejected
``SCHEDULER_AUTH_FAILURE_THRESHOLD`` times in a row have the schedule
deactivated to avoid locking the portal account.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session, sessionmaker

from app.config import SchedulerSettings
from app.scheduler.recurrence import ScheduleConfigurationError, compute_next_run, validate_recurrence
from app.scraping.engine import RunExecutor
from app.scraping.errors import AuthenticationError
from app.scraping.logging_utils import log_event
from app.scraping.storage import ResultStore
from app.scraping.types import RunResult, ScrapeTarget
from db.repositories.scraper_config_repository import ScraperConfigRepository, ScraperScheduleRepository
from db.session import session_scope

logger = logging.getLogger(__name__)

TICK_JOB_ID = "scraper_tick"


class ConfigBusyError(RuntimeError):
    """Raised when a config already has a run in flight."""


class ScraperScheduler:
    """
    Selects due schedules, fans runs out to a worker pool and keeps schedule
    bookkeeping. The only writer of ``last_run`` / ``next_run``.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        executor: RunExecutor,
        store: ResultStore,
        settings: SchedulerSettings,
        pool: Executor | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._executor = executor
        self._store = store
        self._settings = settings
        self._pool = pool or ThreadPoolExecutor(
            max_workers=settings.max_workers,
            thread_name_prefix="scraper-run",
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._in_flight: set[int] = set()
        self._lock = threading.Lock()

    # ── Claims ────────────────────────────────────────────────────────────────

    def running_config_ids(self) -> frozenset[int]:
        with self._lock:
            return frozenset(self._in_flight)

    def _claim(self, config_id: int) -> bool:
        with self._lock:
            if config_id in self._in_flight or self._executor.worker_active(config_id):
                return False
            self._in_flight.add(config_id)
            return True

    def _release(self, config_id: int) -> None:
        with self._lock:
            self._in_flight.discard(config_id)

    # ── Tick ──────────────────────────────────────────────────────────────────

    def tick(self, now: datetime | None = None) -> list[Future[RunResult | None]]:
        """
        Start a run for every due schedule. Returns the submitted futures.
        """

        now = now or self._clock()
        claimed: list[tuple[int, ScrapeTarget]] = []

        with session_scope(self._session_factory) as db:
            schedules = ScraperScheduleRepository(db)
            for schedule in schedules.list_due(now):
                try:
                    validate_recurrence(schedule.frequency, schedule.interval, schedule.custom_cron)
                except ScheduleConfigurationError as exc:
                    schedules.deactivate(schedule.id, reason=f"configuration error: {exc}")
                    log_event(
                        logger,
                        logging.ERROR,
                        "schedule_misconfigured",
                        schedule_id=schedule.id,
                        config_id=schedule.scraper_config_id,
                        error=str(exc),
                    )
                    continue

                if not self._claim(schedule.scraper_config_id):
                    log_event(
                        logger,
                        logging.INFO,
                        "schedule_skipped_in_flight",
                        schedule_id=schedule.id,
                        config_id=schedule.scraper_config_id,
                    )
                    continue
                if not schedules.is_due(schedule.id, now):
                    # A run that ended after list_due already advanced next_run.
                    self._release(schedule.scraper_config_id)
                    log_event(
                        logger,
                        logging.INFO,
                        "schedule_skipped_already_advanced",
                        schedule_id=schedule.id,
                        config_id=schedule.scraper_config_id,
                    )
                    continue
                claimed.append((schedule.id, ScrapeTarget.from_config(schedule.config)))
            db.commit()

        if not claimed:
            logger.debug("Scheduler tick at %s: nothing due", now.isoformat())
            return []

        futures: list[Future[RunResult | None]] = []
        for index, (schedule_id, target) in enumerate(claimed):
            try:
                futures.append(self._pool.submit(self._run_schedule, schedule_id, target))
            except RuntimeError:
                # Pool shut down mid-tick: release every claim not yet handed over.
                for _, pending in claimed[index:]:
                    self._release(pending.config_id)
                raise
        log_event(logger, logging.INFO, "scheduler_tick", due=len(claimed), at=now)
        return futures

    def _run_schedule(self, schedule_id: int, target: ScrapeTarget) -> RunResult | None:
        try:
            result = self._executor.run(target)
            self._store.record(result)
            self._advance(schedule_id, result)
            return result
        except Exception:
            logger.exception(
                "Scheduler failed to complete schedule_id=%s config_id=%s",
                schedule_id,
                target.config_id,
            )
            return None
        finally:
            self._release(target.config_id)

    def _advance(self, schedule_id: int, result: RunResult) -> None:
        with session_scope(self._session_factory) as db:
            schedules = ScraperScheduleRepository(db)
            schedule = schedules.require(schedule_id)
            try:
                next_run = compute_next_run(
                    frequency=schedule.frequency,
                    interval=schedule.interval,
                    custom_cron=schedule.custom_cron,
                    last_run=result.execution_time,
                    not_before=self._clock(),
                )
            except ScheduleConfigurationError as exc:
                schedule.last_run = result.execution_time
                schedules.deactivate(schedule_id, reason=f"configuration error: {exc}")
                log_event(
                    logger,
                    logging.ERROR,
                    "schedule_misconfigured",
                    schedule_id=schedule_id,
                    error=str(exc),
                )
            else:
                schedules.record_run(schedule_id, last_run=result.execution_time, next_run=next_run)

            if self._should_pause_for_auth(result):
                schedules.deactivate(
                    schedule_id,
                    reason=(
                        f"authentication failed {self._settings.auth_failure_threshold} "
                        "consecutive times"
                    ),
                )
                log_event(
                    logger,
                    logging.WARNING,
                    "schedule_auto_deactivated",
                    schedule_id=schedule_id,
                    config_id=result.scraper_config_id,
                    reason="authentication",
                )
            db.commit()

    def _should_pause_for_auth(self, result: RunResult) -> bool:
        if result.success or result.error_type != AuthenticationError.error_type:
            return False
        threshold = self._settings.auth_failure_threshold
        streak = self._store.consecutive_failures(
            result.scraper_config_id,
            AuthenticationError.error_type,
            window=threshold,
        )
        return streak >= threshold

    # ── On-demand ─────────────────────────────────────────────────────────────

    def run_now(self, config_id: int, *, month: str | None = None) -> RunResult:
        """
        Run one config immediately in the caller's thread.

        Shares the per-config claim with scheduled runs but leaves schedule
        timing untouched.
        """

        with session_scope(self._session_factory) as db:
            target = ScrapeTarget.from_config(ScraperConfigRepository(db).require(config_id))

        if not self._claim(config_id):
            raise ConfigBusyError(f"Scraper config {config_id} already has a run in flight.")
        try:
            return self._store.record(self._executor.run(target, month=month))
        finally:
            self._release(config_id)

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


def build_scheduler(scraper_scheduler: ScraperScheduler, settings: SchedulerSettings) -> BackgroundScheduler:
    """
    Wrap the tick in a configured but *not yet started* ``BackgroundScheduler``.

    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """

    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        scraper_scheduler.tick,
        trigger="interval",
        seconds=settings.tick_seconds,
        id=TICK_JOB_ID,
        name="Scraper schedule tick",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )
    return scheduler
