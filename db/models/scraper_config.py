"""
db/models/scraper_config.py

Scrape target definition: which portal to visit and which subscriber to
collect usage for.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.scraper_schedule import ScraperSchedule


class ScraperConfig(Base, TimestampMixin):
    """
    One scrape target.

    ``url`` points at the portal login page. ``selector`` is an optional CSS
    hint for the monthly usage table. ``credential_profile`` names the
    credential pair read from the environment; the secret itself is never
    stored here.
    """

    __tablename__ = "scraper_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    url: Mapped[str] = mapped_column(String(1000), nullable=False)

    selector: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        comment="Optional CSS selector for the monthly usage table",
    )

    subject_identifier: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Portal username / account key searched for on each run",
    )

    credential_profile: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="default",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────────

    schedules: Mapped[list["ScraperSchedule"]] = relationship(
        "ScraperSchedule",
        back_populates="config",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (Index("ix_scraper_configs_is_active", "is_active"),)

    def __repr__(self) -> str:
        return f"<ScraperConfig id={self.id} name={self.name!r} active={self.is_active}>"
