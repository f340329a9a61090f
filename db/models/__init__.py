"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.scraper_config import ScraperConfig
from db.models.scraper_result import ScraperResult
from db.models.scraper_schedule import ScheduleFrequency, ScraperSchedule

__all__ = [
    "ScheduleFrequency",
    "ScraperConfig",
    "ScraperResult",
    "ScraperSchedule",
]
