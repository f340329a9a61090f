"""
tests/test_scraper_config_service.py

Config and schedule management: validation, deletion guard and next-run
bookkeeping on (re)activation and recurrence edits.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from app.scheduler.recurrence import ScheduleConfigurationError
from app.services.scraper_config_service import ScraperConfigService
from db.base import as_utc
from db.repositories import (
    ScraperConfigInUseError,
    ScraperConfigNotFoundError,
    ScraperScheduleNotFoundError,
    ScraperScheduleRepository,
)

NOW = datetime(2024, 8, 20, 14, 30, tzinfo=timezone.utc)


@pytest.fixture()
def service() -> ScraperConfigService:
    return ScraperConfigService(clock=lambda: NOW)


def _config(service: ScraperConfigService, db: Session, **overrides: str) -> int:
    fields = {
        "name": "Fixed broadband portal",
        "url": "https://portal.example.test/login",
        "subject_identifier": "alice01",
    }
    fields.update(overrides)
    return service.create_config(db, **fields).id


# ---------------------------------------------------------------------------
# Configs
# ---------------------------------------------------------------------------


class TestConfigs:
    def test_create_strips_and_defaults(self, service: ScraperConfigService, db: Session) -> None:
        config = service.create_config(
            db,
            name="  Portal  ",
            url=" https://portal.example.test/login ",
            subject_identifier=" alice01 ",
            selector="   ",
        )

        assert config.name == "Portal"
        assert config.url == "https://portal.example.test/login"
        assert config.subject_identifier == "alice01"
        assert config.selector is None
        assert config.credential_profile == "default"
        assert config.is_active is True

    @pytest.mark.parametrize("url", ["portal.example.test/login", "ftp://portal.example.test", "https://"])
    def test_rejects_non_http_urls(self, service: ScraperConfigService, db: Session, url: str) -> None:
        with pytest.raises(ValueError):
            _config(service, db, url=url)

    def test_rejects_blank_subject(self, service: ScraperConfigService, db: Session) -> None:
        with pytest.raises(ValueError):
            _config(service, db, subject_identifier="   ")

    def test_update_validates_fields(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)

        updated = service.update_config(db, config_id, subject_identifier=" bob02 ", selector="#usage")
        assert updated.subject_identifier == "bob02"
        assert updated.selector == "#usage"

        with pytest.raises(ValueError):
            service.update_config(db, config_id, url="not a url")

    def test_update_rejects_unknown_fields(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        with pytest.raises(ValueError):
            service.update_config(db, config_id, is_active=False)

    def test_list_active_only(self, service: ScraperConfigService, db: Session) -> None:
        first = _config(service, db, name="first")
        second = _config(service, db, name="second")
        service.set_config_active(db, second, False)

        assert [config.id for config in service.list_configs(db)] == [first, second]
        assert [config.id for config in service.list_configs(db, active_only=True)] == [first]

    def test_missing_config(self, service: ScraperConfigService, db: Session) -> None:
        with pytest.raises(ScraperConfigNotFoundError):
            service.get_config(db, 999)
        with pytest.raises(ScraperConfigNotFoundError):
            service.list_schedules(db, 999)

    def test_delete_refused_while_schedules_reference_config(
        self, service: ScraperConfigService, db: Session
    ) -> None:
        config_id = _config(service, db)
        service.create_schedule(db, config_id, frequency="daily")

        with pytest.raises(ScraperConfigInUseError):
            service.delete_config(db, config_id)
        db.rollback()
        assert service.get_config(db, config_id).id == config_id

    def test_delete_unreferenced_config(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        service.delete_config(db, config_id)
        with pytest.raises(ScraperConfigNotFoundError):
            service.get_config(db, config_id)


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


class TestSchedules:
    def test_new_schedule_is_due_immediately(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        schedule = service.create_schedule(db, config_id, frequency="weekly", interval=2)

        assert schedule.next_run is None
        assert schedule.last_run is None
        assert [item.id for item in ScraperScheduleRepository(db).list_due(NOW)] == [schedule.id]

    def test_custom_requires_valid_cron(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        with pytest.raises(ScheduleConfigurationError):
            service.create_schedule(db, config_id, frequency="custom")
        with pytest.raises(ScheduleConfigurationError):
            service.create_schedule(db, config_id, frequency="custom", custom_cron="99 * * * *")

        schedule = service.create_schedule(db, config_id, frequency="custom", custom_cron=" 0 6 * * 1 ")
        assert schedule.custom_cron == "0 6 * * 1"

    def test_schedule_for_missing_config(self, service: ScraperConfigService, db: Session) -> None:
        with pytest.raises(ScraperConfigNotFoundError):
            service.create_schedule(db, 404, frequency="daily")

    def test_update_recomputes_next_run_from_last_run(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        schedule = service.create_schedule(db, config_id, frequency="daily")
        last_run = NOW - timedelta(hours=3)
        ScraperScheduleRepository(db).record_run(schedule.id, last_run=last_run, next_run=last_run + timedelta(days=1))
        db.commit()

        updated = service.update_schedule(db, schedule.id, frequency="hourly", interval=6)

        assert updated.frequency == "hourly"
        assert as_utc(updated.next_run) == last_run + timedelta(hours=6)

    def test_update_away_from_custom_clears_cron(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        schedule = service.create_schedule(db, config_id, frequency="custom", custom_cron="0 6 * * *")

        updated = service.update_schedule(db, schedule.id, frequency="monthly")

        assert updated.custom_cron is None
        assert updated.next_run is None

    def test_update_rejects_bad_interval(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        schedule = service.create_schedule(db, config_id, frequency="daily")
        with pytest.raises(ScheduleConfigurationError):
            service.update_schedule(db, schedule.id, interval=0)

    def test_deactivate_then_reactivate(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        schedule = service.create_schedule(db, config_id, frequency="daily")

        paused = service.set_schedule_active(db, schedule.id, False)
        assert paused.is_active is False
        assert paused.deactivation_reason == "deactivated by operator"
        assert ScraperScheduleRepository(db).list_due(NOW) == []

        resumed = service.set_schedule_active(db, schedule.id, True)
        assert resumed.is_active is True
        assert resumed.deactivation_reason is None
        assert as_utc(resumed.next_run) == NOW

    def test_missing_schedule(self, service: ScraperConfigService, db: Session) -> None:
        with pytest.raises(ScraperScheduleNotFoundError):
            service.set_schedule_active(db, 12, True)

    def test_list_schedules_in_creation_order(self, service: ScraperConfigService, db: Session) -> None:
        config_id = _config(service, db)
        first = service.create_schedule(db, config_id, frequency="daily")
        second = service.create_schedule(db, config_id, frequency="hourly", is_active=False)

        assert [item.id for item in service.list_schedules(db, config_id)] == [first.id, second.id]
