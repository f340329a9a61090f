"""
Shared scraping runtime data models.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ScrapeTarget:
    """
    Detached snapshot of a ``ScraperConfig`` handed to worker threads.
    """

    config_id: int
    name: str
    url: str
    subject_identifier: str
    selector: str | None = None
    credential_profile: str = "default"

    @classmethod
    def from_config(cls, config: Any) -> "ScrapeTarget":
        return cls(
            config_id=config.id,
            name=config.name,
            url=config.url,
            subject_identifier=config.subject_identifier,
            selector=config.selector,
            credential_profile=config.credential_profile or "default",
        )


@dataclass(frozen=True)
class UsageRecord:
    """
    One (year, month) row of the portal's historical usage table.
    """

    year_month: str
    source: str
    year: int
    month_name: str
    subject_identifier: str
    connected_time: str
    total_bytes: int
    total_gb: str
    msisdn: str | None = None

    @property
    def month(self) -> int:
        return int(self.year_month.split("-", 1)[1])

    def to_payload(self) -> dict[str, Any]:
        return {
            "yearMonth": self.year_month,
            "source": self.source,
            "year": self.year,
            "monthName": self.month_name,
            "subjectIdentifier": self.subject_identifier,
            "msisdn": self.msisdn,
            "connectedTime": self.connected_time,
            "totalBytes": self.total_bytes,
            "totalGB": self.total_gb,
        }


@dataclass(frozen=True)
class DailyUsageRecord:
    date: str
    total_bytes: int
    total_gb: str
    connected_time: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "totalBytes": self.total_bytes,
            "totalGB": self.total_gb,
            "connectedTime": self.connected_time,
        }


@dataclass
class ExtractionResult:
    """
    Output of one successful ``extract`` call.

    ``daily`` is keyed by ``year_month``. A month whose breakdown could not
    be read maps to an empty list and is listed in ``gaps``.
    """

    subject_identifier: str
    records: list[UsageRecord] = field(default_factory=list)
    daily: dict[str, list[DailyUsageRecord]] = field(default_factory=dict)
    gaps: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "subjectIdentifier": self.subject_identifier,
            "records": [record.to_payload() for record in self.records],
            "daily": {
                year_month: [day.to_payload() for day in days]
                for year_month, days in self.daily.items()
            },
            "gaps": list(self.gaps),
        }


@dataclass(frozen=True)
class RunResult:
    """
    Outcome for one run attempt. Always produced, whatever happened.
    """

    scraper_config_id: int
    execution_time: datetime
    duration_ms: int
    success: bool
    result_data: dict[str, Any] | None = None
    error_message: str | None = None
    error_type: str | None = None
    attempts: int = 1

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["execution_time"] = self.execution_time.isoformat()
        return payload
