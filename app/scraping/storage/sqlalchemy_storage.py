"""
SQLAlchemy-backed result store.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.scraping.storage.base import ResultStore
from app.scraping.types import RunResult
from db.base import as_utc
from db.models.scraper_result import ScraperResult
from db.repositories.scraper_result_repository import ScraperResultRepository
from db.session import session_scope


def to_run_result(row: ScraperResult) -> RunResult:
    return RunResult(
        scraper_config_id=row.scraper_config_id,
        execution_time=as_utc(row.execution_time),
        duration_ms=row.duration_ms,
        success=row.success,
        result_data=row.result_data,
        error_message=row.error_message,
        error_type=row.error_type,
        attempts=row.attempts,
    )


class SQLAlchemyResultStore(ResultStore):
    """
    Persist results through the repository, one short transaction per call.
    """

    def __init__(self, *, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def record(self, result: RunResult) -> RunResult:
        with session_scope(self._session_factory) as db:
            try:
                row = ScraperResultRepository(db).add(
                    scraper_config_id=result.scraper_config_id,
                    execution_time=result.execution_time,
                    duration_ms=result.duration_ms,
                    success=result.success,
                    result_data=result.result_data,
                    error_message=result.error_message,
                    error_type=result.error_type,
                    attempts=result.attempts,
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
            return to_run_result(row)

    def list_results(
        self,
        config_id: int,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RunResult]:
        with session_scope(self._session_factory) as db:
            rows = ScraperResultRepository(db).list_for_config(config_id, since=as_utc(since), limit=limit)
            return [to_run_result(row) for row in rows]

    def get_latest(self, config_id: int) -> RunResult | None:
        with session_scope(self._session_factory) as db:
            row = ScraperResultRepository(db).latest_for_config(config_id)
            return to_run_result(row) if row is not None else None

    def consecutive_failures(self, config_id: int, error_type: str, *, window: int) -> int:
        with session_scope(self._session_factory) as db:
            recent = ScraperResultRepository(db).recent_error_types(config_id, limit=window)
        count = 0
        for value in recent:
            if value != error_type:
                break
            count += 1
        return count
