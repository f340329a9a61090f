"""
Repository for append-only scraper run results.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.scraper_result import ScraperResult


class ScraperResultRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add(
        self,
        *,
        scraper_config_id: int,
        execution_time: datetime,
        duration_ms: int,
        success: bool,
        result_data: dict[str, Any] | None,
        error_message: str | None,
        error_type: str | None,
        attempts: int,
    ) -> ScraperResult:
        row = ScraperResult(
            scraper_config_id=scraper_config_id,
            execution_time=execution_time,
            duration_ms=max(0, duration_ms),
            success=success,
            result_data=result_data if success else None,
            error_message=None if success else (error_message or "unknown error"),
            error_type=None if success else error_type,
            attempts=max(1, attempts),
        )
        self._session.add(row)
        self._session.flush()
        return row

    def list_for_config(
        self,
        scraper_config_id: int,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[ScraperResult]:
        stmt: Select[tuple[ScraperResult]] = select(ScraperResult).where(
            ScraperResult.scraper_config_id == scraper_config_id
        )
        if since is not None:
            stmt = stmt.where(ScraperResult.execution_time >= since)
        stmt = stmt.order_by(ScraperResult.execution_time.desc(), ScraperResult.id.desc())
        if limit is not None:
            if limit < 0:
                raise ValueError(f"limit must be non-negative, got {limit}.")
            if limit == 0:
                return []
            stmt = stmt.limit(limit)
        return list(self._session.scalars(stmt).all())

    def latest_for_config(self, scraper_config_id: int) -> ScraperResult | None:
        rows = self.list_for_config(scraper_config_id, limit=1)
        return rows[0] if rows else None

    def recent_error_types(self, scraper_config_id: int, *, limit: int) -> list[str | None]:
        stmt = (
            select(ScraperResult.error_type)
            .where(ScraperResult.scraper_config_id == scraper_config_id)
            .order_by(ScraperResult.execution_time.desc(), ScraperResult.id.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())
