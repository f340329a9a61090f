"""
app/api/routers package marker.
"""

from app.api.routers.scraper_configs import router as scraper_configs_router
from app.api.routers.scraper_results import router as scraper_results_router
from app.api.routers.scraper_status import router as scraper_status_router

__all__ = [
    "scraper_configs_router",
    "scraper_results_router",
    "scraper_status_router",
]
