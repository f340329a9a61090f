"""
app/schemas package marker.
"""

from app.schemas.scrapers import (
    HealthResponse,
    RunRequest,
    ScraperConfigCreateRequest,
    ScraperConfigResponse,
    ScraperConfigUpdateRequest,
    ScraperResultResponse,
    ScraperScheduleCreateRequest,
    ScraperScheduleResponse,
    ScraperScheduleUpdateRequest,
    ScraperStatusResponse,
)

__all__ = [
    "HealthResponse",
    "RunRequest",
    "ScraperConfigCreateRequest",
    "ScraperConfigResponse",
    "ScraperConfigUpdateRequest",
    "ScraperResultResponse",
    "ScraperScheduleCreateRequest",
    "ScraperScheduleResponse",
    "ScraperScheduleUpdateRequest",
    "ScraperStatusResponse",
]
