"""
Config helpers for usage scraping.
"""

from app.scraping.config.loader import (
    credential_env_names,
    get_scraper_runtime_settings,
    load_portal_credentials,
)
from app.scraping.config.models import PortalCredentials, ScraperRuntimeSettings, SessionBackend

__all__ = [
    "PortalCredentials",
    "ScraperRuntimeSettings",
    "SessionBackend",
    "credential_env_names",
    "get_scraper_runtime_settings",
    "load_portal_credentials",
]
