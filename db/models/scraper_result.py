"""
db/models/scraper_result.py

Append-only audit row, one per run attempt.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload


class ScraperResult(Base):
    __tablename__ = "scraper_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    scraper_config_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("scraper_configs.id", ondelete="CASCADE"),
        nullable=False,
    )

    execution_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)

    success: Mapped[bool] = mapped_column(Boolean, nullable=False)

    result_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONPayload,
        nullable=True,
        comment="Extracted usage payload on success",
    )

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    error_type: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="infrastructure, authentication, not_found, structure, timeout, unexpected",
    )

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        Index("ix_scraper_results_config_time", "scraper_config_id", "execution_time"),
        Index("ix_scraper_results_success", "success"),
    )

    def __repr__(self) -> str:
        return (
            f"<ScraperResult id={self.id} config={self.scraper_config_id} "
            f"success={self.success} error_type={self.error_type!r}>"
        )
