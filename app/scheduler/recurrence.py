"""
Next-run computation for scraper schedules.

Interval frequencies add ``interval`` calendar units to ``last_run``;
``custom`` schedules evaluate a 5-field crontab expression with APScheduler's
``CronTrigger``. Monthly steps clamp to the last day of shorter months
(Jan 31 + 1 month = Feb 28/29).
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone

from apscheduler.triggers.cron import CronTrigger

from db.models.scraper_schedule import ScheduleFrequency

_FIXED_STEPS = {
    ScheduleFrequency.HOURLY: timedelta(hours=1),
    ScheduleFrequency.DAILY: timedelta(days=1),
    ScheduleFrequency.WEEKLY: timedelta(weeks=1),
}


class ScheduleConfigurationError(ValueError):
    """Raised when a schedule's frequency, interval or cron expression is unusable."""


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_cron(expression: str | None) -> CronTrigger:
    if not expression or not expression.strip():
        raise ScheduleConfigurationError("customCron is required when frequency is 'custom'.")
    try:
        return CronTrigger.from_crontab(expression.strip(), timezone=timezone.utc)
    except ValueError as exc:
        raise ScheduleConfigurationError(f"Invalid cron expression {expression!r}: {exc}") from exc


def validate_recurrence(frequency: str, interval: int, custom_cron: str | None) -> None:
    if frequency not in ScheduleFrequency.ALL:
        raise ScheduleConfigurationError(
            f"Unknown frequency {frequency!r}. Allowed values: {sorted(ScheduleFrequency.ALL)}."
        )
    if frequency == ScheduleFrequency.CUSTOM:
        parse_cron(custom_cron)
        return
    if custom_cron:
        raise ScheduleConfigurationError("customCron is only allowed when frequency is 'custom'.")
    if interval < 1:
        raise ScheduleConfigurationError("interval must be at least 1.")


def add_months(value: datetime, months: int) -> datetime:
    total = value.month - 1 + months
    year = value.year + total // 12
    month = total % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_next_run(
    *,
    frequency: str,
    interval: int,
    custom_cron: str | None,
    last_run: datetime | None,
    not_before: datetime | None = None,
) -> datetime:
    """
    Earliest run time after ``last_run`` consistent with the recurrence.

    A schedule that never ran is due at ``not_before`` (i.e. immediately).
    When ``not_before`` is given, missed occurrences are skipped so the
    result is strictly later than it.
    """

    validate_recurrence(frequency, interval, custom_cron)
    floor = _utc(not_before) if not_before is not None else None
    if last_run is None:
        if floor is None:
            raise ScheduleConfigurationError("A first run time needs either last_run or not_before.")
        return floor
    last = _utc(last_run)

    if frequency == ScheduleFrequency.CUSTOM:
        trigger = parse_cron(custom_cron)
        base = max(last, floor) if floor is not None else last
        next_fire = trigger.get_next_fire_time(None, base + timedelta(seconds=1))
        if next_fire is None:
            raise ScheduleConfigurationError(f"Cron expression {custom_cron!r} never fires again.")
        return _utc(next_fire)

    if frequency == ScheduleFrequency.MONTHLY:
        steps = 1
        candidate = add_months(last, interval)
        while floor is not None and candidate <= floor:
            steps += 1
            candidate = add_months(last, interval * steps)
        return candidate

    step = _FIXED_STEPS[frequency] * interval
    candidate = last + step
    if floor is not None and candidate <= floor:
        skipped = (floor - last) // step
        candidate = last + step * (skipped + 1)
    return candidate
