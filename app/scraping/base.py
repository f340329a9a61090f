"""
Extraction driver contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from app.scraping.session.base import RunDeadline
from app.scraping.types import ExtractionResult


class ExtractionDriver(ABC):
    """
    Collects usage telemetry for one subject in one self-contained session.

    Implementations keep no state between calls: every ``extract`` opens its
    own session and releases it before returning, on every exit path.
    Failures are raised as ``app.scraping.errors.ExtractionError`` subclasses.
    """

    @abstractmethod
    def extract(
        self,
        subject_identifier: str,
        month: str | None = None,
        *,
        deadline: RunDeadline,
    ) -> ExtractionResult:
        """
        Return monthly records plus the per-month daily breakdown.

        ``month`` (``YYYY-MM``) restricts the result to that month.
        """
