"""
Repository layer exports.
"""

from db.repositories.errors import (
    ScraperConfigInUseError,
    ScraperConfigNotFoundError,
    ScraperRepositoryError,
    ScraperScheduleNotFoundError,
)
from db.repositories.scraper_config_repository import (
    ScraperConfigRepository,
    ScraperScheduleRepository,
)
from db.repositories.scraper_result_repository import ScraperResultRepository

__all__ = [
    "ScraperConfigInUseError",
    "ScraperConfigNotFoundError",
    "ScraperConfigRepository",
    "ScraperRepositoryError",
    "ScraperResultRepository",
    "ScraperScheduleNotFoundError",
    "ScraperScheduleRepository",
]
