"""
app/api/dependencies.py

Shared FastAPI dependencies and error mapping for the scraper routers.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.scheduler.jobs import ConfigBusyError
from app.services.scraper_config_service import ScraperConfigService, get_scraper_config_service
from db.models.scraper_config import ScraperConfig
from db.repositories.errors import (
    ScraperConfigInUseError,
    ScraperConfigNotFoundError,
    ScraperScheduleNotFoundError,
)
from db.session import get_db


def to_http_exception(exc: Exception) -> HTTPException:
    """
    Map domain exceptions raised by services onto HTTP status codes.
    """

    if isinstance(exc, (ScraperConfigNotFoundError, ScraperScheduleNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (ScraperConfigInUseError, ConfigBusyError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    raise exc


def get_existing_config(
    config_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperConfig:
    """
    Resolve the ``config_id`` path parameter or answer 404.
    """

    try:
        return service.get_config(db, config_id)
    except ScraperConfigNotFoundError as exc:
        raise to_http_exception(exc) from exc
