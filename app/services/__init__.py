"""
app/services package marker.
"""

from app.services.scraper_config_service import (
    ScraperConfigService,
    get_scraper_config_service,
)

__all__ = [
    "ScraperConfigService",
    "get_scraper_config_service",
]
