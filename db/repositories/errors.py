"""
Repository-layer exceptions for scraper config, schedule and result flows.
"""

from __future__ import annotations


class ScraperRepositoryError(Exception):
    """Base exception for scraper repository failures."""


class ScraperConfigNotFoundError(ScraperRepositoryError):
    """Raised when a referenced scraper config does not exist."""


class ScraperScheduleNotFoundError(ScraperRepositoryError):
    """Raised when a referenced schedule does not exist."""


class ScraperConfigInUseError(ScraperRepositoryError):
    """Raised when deleting a config that schedules still reference."""
