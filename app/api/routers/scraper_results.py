"""
app/api/routers/scraper_results.py

Read-only access to persisted run results.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_existing_config
from app.schemas.scrapers import ScraperResultResponse
from app.scraping.storage import ResultStore
from app.services.scraper_runtime import get_result_store
from db.models.scraper_config import ScraperConfig

router = APIRouter(prefix="/scraper-configs", tags=["scraper-results"])


@router.get("/{config_id}/results", response_model=list[ScraperResultResponse])
def list_results(
    since: datetime | None = Query(default=None, description="Only results executed at or after this time"),
    limit: int | None = Query(default=None, ge=1, le=1000),
    config: ScraperConfig = Depends(get_existing_config),
    store: ResultStore = Depends(get_result_store),
) -> list[ScraperResultResponse]:
    """
    Results for one config, newest execution first.
    """

    results = store.list_results(config.id, since=since, limit=limit)
    return [ScraperResultResponse.model_validate(result) for result in results]


@router.get("/{config_id}/results/latest", response_model=ScraperResultResponse)
def latest_result(
    config: ScraperConfig = Depends(get_existing_config),
    store: ResultStore = Depends(get_result_store),
) -> ScraperResultResponse:
    result = store.get_latest(config.id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No results recorded for scraper config {config.id}.",
        )
    return ScraperResultResponse.model_validate(result)
