"""
Repository for scraper config and schedule records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.orm import Session, selectinload

from db.models.scraper_config import ScraperConfig
from db.models.scraper_schedule import ScraperSchedule
from db.repositories.errors import (
    ScraperConfigInUseError,
    ScraperConfigNotFoundError,
    ScraperScheduleNotFoundError,
)

_UPDATABLE_CONFIG_FIELDS = frozenset(
    {"name", "url", "selector", "subject_identifier", "credential_profile"}
)


class ScraperConfigRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        *,
        name: str,
        url: str,
        subject_identifier: str,
        selector: str | None = None,
        credential_profile: str = "default",
        created_by: int | None = None,
        is_active: bool = True,
    ) -> ScraperConfig:
        config = ScraperConfig(
            name=name,
            url=url,
            subject_identifier=subject_identifier,
            selector=selector,
            credential_profile=credential_profile,
            created_by=created_by,
            is_active=is_active,
        )
        self._session.add(config)
        self._session.flush()
        return config

    def get(self, config_id: int) -> ScraperConfig | None:
        return self._session.get(ScraperConfig, config_id)

    def require(self, config_id: int) -> ScraperConfig:
        config = self.get(config_id)
        if config is None:
            raise ScraperConfigNotFoundError(f"Scraper config {config_id} not found.")
        return config

    def list(self, *, active_only: bool = False) -> list[ScraperConfig]:
        stmt: Select[tuple[ScraperConfig]] = select(ScraperConfig)
        if active_only:
            stmt = stmt.where(ScraperConfig.is_active.is_(True))
        return list(self._session.scalars(stmt.order_by(ScraperConfig.id)).all())

    def update(self, config_id: int, **fields: Any) -> ScraperConfig:
        config = self.require(config_id)
        unknown = set(fields) - _UPDATABLE_CONFIG_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable on a scraper config: {sorted(unknown)}")
        for key, value in fields.items():
            setattr(config, key, value)
        return config

    def set_active(self, config_id: int, active: bool) -> ScraperConfig:
        config = self.require(config_id)
        config.is_active = active
        return config

    def delete(self, config_id: int) -> None:
        config = self.require(config_id)
        referencing = self._session.scalar(
            select(func.count())
            .select_from(ScraperSchedule)
            .where(ScraperSchedule.scraper_config_id == config_id)
        )
        if referencing:
            raise ScraperConfigInUseError(
                f"Scraper config {config_id} is referenced by {referencing} schedule(s)."
            )
        self._session.delete(config)
        self._session.flush()


class ScraperScheduleRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        *,
        scraper_config_id: int,
        frequency: str,
        interval: int = 1,
        custom_cron: str | None = None,
        next_run: datetime | None = None,
        is_active: bool = True,
    ) -> ScraperSchedule:
        ScraperConfigRepository(self._session).require(scraper_config_id)
        schedule = ScraperSchedule(
            scraper_config_id=scraper_config_id,
            frequency=frequency,
            interval=interval,
            custom_cron=custom_cron,
            next_run=next_run,
            is_active=is_active,
        )
        self._session.add(schedule)
        self._session.flush()
        return schedule

    def get(self, schedule_id: int) -> ScraperSchedule | None:
        return self._session.get(ScraperSchedule, schedule_id)

    def require(self, schedule_id: int) -> ScraperSchedule:
        schedule = self.get(schedule_id)
        if schedule is None:
            raise ScraperScheduleNotFoundError(f"Scraper schedule {schedule_id} not found.")
        return schedule

    def list_for_config(self, scraper_config_id: int) -> list[ScraperSchedule]:
        stmt = (
            select(ScraperSchedule)
            .where(ScraperSchedule.scraper_config_id == scraper_config_id)
            .order_by(ScraperSchedule.id)
        )
        return list(self._session.scalars(stmt).all())

    @staticmethod
    def _due_conditions(now: datetime) -> tuple:
        return (
            ScraperSchedule.is_active.is_(True),
            ScraperConfig.is_active.is_(True),
            or_(ScraperSchedule.next_run.is_(None), ScraperSchedule.next_run <= now),
        )

    def list_due(self, now: datetime) -> list[ScraperSchedule]:
        """
        Active schedules of active configs whose next run has arrived.
        """

        stmt = (
            select(ScraperSchedule)
            .join(ScraperSchedule.config)
            .options(selectinload(ScraperSchedule.config))
            .where(*self._due_conditions(now))
            .order_by(ScraperSchedule.next_run.is_(None).desc(), ScraperSchedule.next_run, ScraperSchedule.id)
        )
        return list(self._session.scalars(stmt).all())

    def is_due(self, schedule_id: int, now: datetime) -> bool:
        """Re-check one schedule against the database, bypassing loaded state."""
        stmt = (
            select(ScraperSchedule.id)
            .join(ScraperSchedule.config)
            .where(ScraperSchedule.id == schedule_id, *self._due_conditions(now))
        )
        return self._session.scalar(stmt) is not None

    def record_run(self, schedule_id: int, *, last_run: datetime, next_run: datetime) -> ScraperSchedule:
        schedule = self.require(schedule_id)
        schedule.last_run = last_run
        schedule.next_run = next_run
        return schedule

    def deactivate(self, schedule_id: int, *, reason: str) -> ScraperSchedule:
        schedule = self.require(schedule_id)
        schedule.is_active = False
        schedule.deactivation_reason = reason
        return schedule
