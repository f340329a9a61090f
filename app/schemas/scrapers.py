"""
app/schemas/scrapers.py

Request/response schemas for scraper configs, schedules, runs and results.

Wire field names are camelCase (``subjectIdentifier``, ``nextRun``); both
the alias and the Python name are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Frequency = Literal["hourly", "daily", "weekly", "monthly", "custom"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ScraperConfigCreateRequest(_CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str = Field(..., min_length=1, max_length=1000)
    subject_identifier: str = Field(..., min_length=1, max_length=255)
    selector: str | None = Field(default=None, max_length=500)
    credential_profile: str = Field(default="default", min_length=1, max_length=100)
    created_by: int | None = None


class ScraperConfigUpdateRequest(_CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    url: str | None = Field(default=None, min_length=1, max_length=1000)
    subject_identifier: str | None = Field(default=None, min_length=1, max_length=255)
    selector: str | None = Field(default=None, max_length=500)
    credential_profile: str | None = Field(default=None, min_length=1, max_length=100)


class ScraperConfigResponse(_CamelModel):
    id: int
    name: str
    url: str
    selector: str | None
    subject_identifier: str
    credential_profile: str
    is_active: bool
    created_by: int | None
    created_at: datetime
    updated_at: datetime


class ScraperScheduleCreateRequest(_CamelModel):
    frequency: Frequency
    interval: int = Field(default=1, ge=1)
    custom_cron: str | None = Field(default=None, max_length=120)
    is_active: bool = True


class ScraperScheduleUpdateRequest(_CamelModel):
    frequency: Frequency | None = None
    interval: int | None = Field(default=None, ge=1)
    custom_cron: str | None = Field(default=None, max_length=120)


class ScraperScheduleResponse(_CamelModel):
    id: int
    scraper_config_id: int
    frequency: str
    interval: int
    custom_cron: str | None
    last_run: datetime | None
    next_run: datetime | None
    is_active: bool
    deactivation_reason: str | None


class RunRequest(_CamelModel):
    month: str | None = Field(default=None, pattern=r"^\d{4}-\d{2}$", description="Restrict to one YYYY-MM month")


class ScraperResultResponse(_CamelModel):
    """
    One persisted run outcome.
    """

    scraper_config_id: int
    execution_time: datetime
    duration_ms: int = Field(..., ge=0)
    success: bool
    result_data: dict[str, Any] | None = None
    error_message: str | None = None
    error_type: str | None = None
    attempts: int = Field(default=1, ge=1)


class ScraperStatusResponse(_CamelModel):
    operational: bool
    session_backend: str
    detail: str
    duration_ms: int
    running_config_ids: list[int] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    scheduler_enabled: bool
