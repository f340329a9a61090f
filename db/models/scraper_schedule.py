"""
db/models/scraper_schedule.py

Recurrence policy for one scraper config. ``last_run`` / ``next_run`` are
written by the scheduler only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.scraper_config import ScraperConfig


class ScheduleFrequency:
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"

    ALL = frozenset({HOURLY, DAILY, WEEKLY, MONTHLY, CUSTOM})


class ScraperSchedule(Base, TimestampMixin):
    __tablename__ = "scraper_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    scraper_config_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("scraper_configs.id", ondelete="RESTRICT"),
        nullable=False,
    )

    frequency: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="hourly, daily, weekly, monthly, custom",
    )

    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    custom_cron: Mapped[str | None] = mapped_column(String(120), nullable=True)

    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    next_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    deactivation_reason: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Set when the scheduler disables the schedule on its own",
    )

    config: Mapped["ScraperConfig"] = relationship("ScraperConfig", back_populates="schedules")

    __table_args__ = (
        Index("ix_scraper_schedules_config_id", "scraper_config_id"),
        Index("ix_scraper_schedules_due", "is_active", "next_run"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScraperSchedule id={self.id} config={self.scraper_config_id} "
            f"frequency={self.frequency!r} interval={self.interval} next_run={self.next_run}>"
        )
