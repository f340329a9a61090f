"""
app/api/routers/scraper_configs.py

Scraper config and schedule management endpoints, plus on-demand runs.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_existing_config, to_http_exception
from app.scheduler.jobs import ConfigBusyError, ScraperScheduler
from app.schemas.scrapers import (
    RunRequest,
    ScraperConfigCreateRequest,
    ScraperConfigResponse,
    ScraperConfigUpdateRequest,
    ScraperResultResponse,
    ScraperScheduleCreateRequest,
    ScraperScheduleResponse,
    ScraperScheduleUpdateRequest,
)
from app.services.scraper_config_service import ScraperConfigService, get_scraper_config_service
from app.services.scraper_runtime import get_scraper_scheduler
from db.models.scraper_config import ScraperConfig
from db.repositories.errors import ScraperRepositoryError
from db.session import get_db

router = APIRouter(tags=["scraper-configs"])


# ---------------------------------------------------------------------------
# Configs
# ---------------------------------------------------------------------------


@router.post(
    "/scraper-configs",
    response_model=ScraperConfigResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_config(
    body: ScraperConfigCreateRequest,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperConfigResponse:
    try:
        config = service.create_config(db, **body.model_dump())
    except ValueError as exc:
        raise to_http_exception(exc) from exc
    return ScraperConfigResponse.model_validate(config)


@router.get("/scraper-configs", response_model=list[ScraperConfigResponse])
def list_configs(
    active_only: bool = Query(default=False, alias="activeOnly"),
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> list[ScraperConfigResponse]:
    configs = service.list_configs(db, active_only=active_only)
    return [ScraperConfigResponse.model_validate(config) for config in configs]


@router.get("/scraper-configs/{config_id}", response_model=ScraperConfigResponse)
def get_config(config: ScraperConfig = Depends(get_existing_config)) -> ScraperConfigResponse:
    return ScraperConfigResponse.model_validate(config)


@router.patch("/scraper-configs/{config_id}", response_model=ScraperConfigResponse)
def update_config(
    config_id: int,
    body: ScraperConfigUpdateRequest,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperConfigResponse:
    changes = body.model_dump(exclude_unset=True)
    try:
        config = service.update_config(db, config_id, **changes)
    except (ScraperRepositoryError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return ScraperConfigResponse.model_validate(config)


@router.delete("/scraper-configs/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_config(
    config_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> Response:
    """
    Delete a config. Refused with 409 while any schedule references it.
    """

    try:
        service.delete_config(db, config_id)
    except ScraperRepositoryError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/scraper-configs/{config_id}/activate", response_model=ScraperConfigResponse)
def activate_config(
    config_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperConfigResponse:
    try:
        config = service.set_config_active(db, config_id, True)
    except ScraperRepositoryError as exc:
        raise to_http_exception(exc) from exc
    return ScraperConfigResponse.model_validate(config)


@router.post("/scraper-configs/{config_id}/deactivate", response_model=ScraperConfigResponse)
def deactivate_config(
    config_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperConfigResponse:
    try:
        config = service.set_config_active(db, config_id, False)
    except ScraperRepositoryError as exc:
        raise to_http_exception(exc) from exc
    return ScraperConfigResponse.model_validate(config)


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------


@router.post(
    "/scraper-configs/{config_id}/schedules",
    response_model=ScraperScheduleResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_schedule(
    config_id: int,
    body: ScraperScheduleCreateRequest,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperScheduleResponse:
    try:
        schedule = service.create_schedule(db, config_id, **body.model_dump())
    except (ScraperRepositoryError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return ScraperScheduleResponse.model_validate(schedule)


@router.get("/scraper-configs/{config_id}/schedules", response_model=list[ScraperScheduleResponse])
def list_schedules(
    config_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> list[ScraperScheduleResponse]:
    try:
        schedules = service.list_schedules(db, config_id)
    except ScraperRepositoryError as exc:
        raise to_http_exception(exc) from exc
    return [ScraperScheduleResponse.model_validate(schedule) for schedule in schedules]


@router.patch("/scraper-schedules/{schedule_id}", response_model=ScraperScheduleResponse)
def update_schedule(
    schedule_id: int,
    body: ScraperScheduleUpdateRequest,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperScheduleResponse:
    try:
        schedule = service.update_schedule(db, schedule_id, **body.model_dump(exclude_unset=True))
    except (ScraperRepositoryError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return ScraperScheduleResponse.model_validate(schedule)


@router.post("/scraper-schedules/{schedule_id}/activate", response_model=ScraperScheduleResponse)
def activate_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperScheduleResponse:
    """
    Re-activate a schedule; it becomes due on the next tick.
    """

    try:
        schedule = service.set_schedule_active(db, schedule_id, True)
    except (ScraperRepositoryError, ValueError) as exc:
        raise to_http_exception(exc) from exc
    return ScraperScheduleResponse.model_validate(schedule)


@router.post("/scraper-schedules/{schedule_id}/deactivate", response_model=ScraperScheduleResponse)
def deactivate_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    service: ScraperConfigService = Depends(get_scraper_config_service),
) -> ScraperScheduleResponse:
    try:
        schedule = service.set_schedule_active(db, schedule_id, False)
    except ScraperRepositoryError as exc:
        raise to_http_exception(exc) from exc
    return ScraperScheduleResponse.model_validate(schedule)


# ---------------------------------------------------------------------------
# On-demand run
# ---------------------------------------------------------------------------


@router.post("/scraper-configs/{config_id}/run", response_model=ScraperResultResponse)
def run_config(
    config_id: int,
    body: RunRequest | None = Body(default=None),
    scheduler: ScraperScheduler = Depends(get_scraper_scheduler),
) -> ScraperResultResponse:
    """
    Run one config now and return the persisted result.

    Answers 409 when the config already has a run in flight. Extraction
    failures are not HTTP errors: they come back as ``success=false``.
    """

    try:
        result = scheduler.run_now(config_id, month=body.month if body else None)
    except (ScraperRepositoryError, ConfigBusyError) as exc:
        raise to_http_exception(exc) from exc
    return ScraperResultResponse.model_validate(result)

