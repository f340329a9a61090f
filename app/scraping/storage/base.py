"""
Result store interface consumed by the scheduler and the reporting API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.scraping.types import RunResult


class ResultStore(ABC):
    """
    Append-only storage for run results.
    """

    @abstractmethod
    def record(self, result: RunResult) -> RunResult:
        """
        Persist one result and return it as stored.
        """

    @abstractmethod
    def list_results(
        self,
        config_id: int,
        *,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[RunResult]:
        """
        Results for one config, newest execution first.

        ``limit=0`` returns nothing; a negative limit raises ``ValueError``.
        """

    @abstractmethod
    def get_latest(self, config_id: int) -> RunResult | None:
        """
        Most recent result for one config, if any.
        """

    @abstractmethod
    def consecutive_failures(self, config_id: int, error_type: str, *, window: int) -> int:
        """
        How many of the newest results (up to ``window``) share ``error_type``
        without interruption.
        """
