"""
app/api/routers/scraper_status.py

Scraping runtime probe.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.scheduler.jobs import ScraperScheduler
from app.schemas.scrapers import ScraperStatusResponse
from app.services.scraper_runtime import ScraperStatus, get_scraper_scheduler, probe_scraper_status

router = APIRouter(prefix="/scraper", tags=["scraper-status"])


@router.get("/status", response_model=ScraperStatusResponse)
def scraper_status(
    probe: ScraperStatus = Depends(probe_scraper_status),
    scheduler: ScraperScheduler = Depends(get_scraper_scheduler),
) -> ScraperStatusResponse:
    """
    Start and close one portal session and report which configs are running.
    """

    return ScraperStatusResponse(
        operational=probe.operational,
        session_backend=probe.session_backend,
        detail=probe.detail,
        duration_ms=probe.duration_ms,
        running_config_ids=sorted(scheduler.running_config_ids()),
    )
