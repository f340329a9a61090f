"""
Concrete extraction drivers.
"""

from app.scraping.scrapers.usage_portal import UsagePortalDriver

__all__ = ["UsagePortalDriver"]
