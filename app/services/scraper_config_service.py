"""
app/services/scraper_config_service.py

Management of scraper configs and their schedules.

Every write commits immediately; the scheduler reads schedules from the
database on each tick, so changes take effect on the next tick.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

from sqlalchemy.orm import Session

from app.scheduler.recurrence import ScheduleConfigurationError, compute_next_run, validate_recurrence
from app.scraping.logging_utils import log_event
from db.models.scraper_config import ScraperConfig
from db.models.scraper_schedule import ScheduleFrequency, ScraperSchedule
from db.repositories.scraper_config_repository import ScraperConfigRepository, ScraperScheduleRepository

logger = logging.getLogger(__name__)


def _validate_url(url: str) -> str:
    cleaned = url.strip()
    parsed = urlparse(cleaned)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"Scraper url must be an absolute http(s) URL, got {url!r}.")
    return cleaned


def _require_text(value: str, field_name: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError(f"{field_name} must not be empty.")
    return cleaned


class ScraperConfigService:
    """
    CRUD over scraper configs and schedules with recurrence validation.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ── Configs ───────────────────────────────────────────────────────────────

    def create_config(
        self,
        db: Session,
        *,
        name: str,
        url: str,
        subject_identifier: str,
        selector: str | None = None,
        credential_profile: str = "default",
        created_by: int | None = None,
    ) -> ScraperConfig:
        config = ScraperConfigRepository(db).create(
            name=_require_text(name, "name"),
            url=_validate_url(url),
            subject_identifier=_require_text(subject_identifier, "subjectIdentifier"),
            selector=selector.strip() if selector and selector.strip() else None,
            credential_profile=_require_text(credential_profile, "credentialProfile"),
            created_by=created_by,
        )
        db.commit()
        log_event(logger, logging.INFO, "scraper_config_created", config_id=config.id, name=config.name)
        return config

    def update_config(self, db: Session, config_id: int, **fields: Any) -> ScraperConfig:
        changes = dict(fields)
        if "url" in changes:
            changes["url"] = _validate_url(changes["url"])
        for key, label in (
            ("name", "name"),
            ("subject_identifier", "subjectIdentifier"),
            ("credential_profile", "credentialProfile"),
        ):
            if key in changes:
                changes[key] = _require_text(changes[key], label)
        if "selector" in changes:
            selector = changes["selector"]
            changes["selector"] = selector.strip() if selector and selector.strip() else None

        config = ScraperConfigRepository(db).update(config_id, **changes)
        db.commit()
        log_event(logger, logging.INFO, "scraper_config_updated", config_id=config_id, fields=sorted(changes))
        return config

    def set_config_active(self, db: Session, config_id: int, active: bool) -> ScraperConfig:
        config = ScraperConfigRepository(db).set_active(config_id, active)
        db.commit()
        log_event(logger, logging.INFO, "scraper_config_active_changed", config_id=config_id, active=active)
        return config

    def delete_config(self, db: Session, config_id: int) -> None:
        ScraperConfigRepository(db).delete(config_id)
        db.commit()
        log_event(logger, logging.INFO, "scraper_config_deleted", config_id=config_id)

    def get_config(self, db: Session, config_id: int) -> ScraperConfig:
        return ScraperConfigRepository(db).require(config_id)

    def list_configs(self, db: Session, *, active_only: bool = False) -> list[ScraperConfig]:
        return ScraperConfigRepository(db).list(active_only=active_only)

    # ── Schedules ─────────────────────────────────────────────────────────────

    def create_schedule(
        self,
        db: Session,
        config_id: int,
        *,
        frequency: str,
        interval: int = 1,
        custom_cron: str | None = None,
        is_active: bool = True,
    ) -> ScraperSchedule:
        """
        Create a schedule. It has never run, so it is due on the next tick.
        """

        custom_cron = custom_cron.strip() if custom_cron and custom_cron.strip() else None
        validate_recurrence(frequency, interval, custom_cron)
        schedule = ScraperScheduleRepository(db).create(
            scraper_config_id=config_id,
            frequency=frequency,
            interval=interval,
            custom_cron=custom_cron,
            next_run=None,
            is_active=is_active,
        )
        db.commit()
        log_event(
            logger,
            logging.INFO,
            "scraper_schedule_created",
            schedule_id=schedule.id,
            config_id=config_id,
            frequency=frequency,
            interval=interval,
        )
        return schedule

    def update_schedule(
        self,
        db: Session,
        schedule_id: int,
        *,
        frequency: str | None = None,
        interval: int | None = None,
        custom_cron: str | None = None,
    ) -> ScraperSchedule:
        """
        Change the recurrence and recompute ``next_run`` from ``last_run``.
        """

        schedules = ScraperScheduleRepository(db)
        schedule = schedules.require(schedule_id)

        new_frequency = frequency if frequency is not None else schedule.frequency
        new_interval = interval if interval is not None else schedule.interval
        if custom_cron is not None:
            new_cron = custom_cron.strip() or None
        elif new_frequency == ScheduleFrequency.CUSTOM:
            new_cron = schedule.custom_cron
        else:
            new_cron = None

        validate_recurrence(new_frequency, new_interval, new_cron)
        schedule.frequency = new_frequency
        schedule.interval = new_interval
        schedule.custom_cron = new_cron
        if schedule.last_run is not None:
            schedule.next_run = compute_next_run(
                frequency=new_frequency,
                interval=new_interval,
                custom_cron=new_cron,
                last_run=schedule.last_run,
            )
        db.commit()
        log_event(
            logger,
            logging.INFO,
            "scraper_schedule_updated",
            schedule_id=schedule_id,
            frequency=new_frequency,
            interval=new_interval,
            next_run=schedule.next_run,
        )
        return schedule

    def set_schedule_active(self, db: Session, schedule_id: int, active: bool) -> ScraperSchedule:
        schedules = ScraperScheduleRepository(db)
        schedule = schedules.require(schedule_id)
        if active:
            validate_recurrence(schedule.frequency, schedule.interval, schedule.custom_cron)
            schedule.is_active = True
            schedule.deactivation_reason = None
            schedule.next_run = self._clock()
        else:
            schedules.deactivate(schedule_id, reason="deactivated by operator")
        db.commit()
        log_event(logger, logging.INFO, "scraper_schedule_active_changed", schedule_id=schedule_id, active=active)
        return schedule

    def list_schedules(self, db: Session, config_id: int) -> list[ScraperSchedule]:
        ScraperConfigRepository(db).require(config_id)
        return ScraperScheduleRepository(db).list_for_config(config_id)


@lru_cache(maxsize=1)
def get_scraper_config_service() -> ScraperConfigService:
    """
    Build and cache the config management service.
    """

    return ScraperConfigService()


__all__ = [
    "ScheduleConfigurationError",
    "ScraperConfigService",
    "get_scraper_config_service",
]
