"""
Test fixtures implementing the extraction contracts without network access.

``FakeExtractionDriver`` synthesizes seeded random usage figures. It exists
only so the executor and scheduler can be exercised offline; it is never
wired into the production runtime.

``FakePortal`` is an in-memory portal whose sessions run the real
``UsagePortalDriver`` phases against scripted HTML pages.
"""

from __future__ import annotations

import random
import threading
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime, timezone

from app.scraping.base import ExtractionDriver
from app.scraping.errors import ExtractionError, InfrastructureError
from app.scraping.normalization import (
    days_in_month,
    month_name,
    normalize_daily,
    parse_month_filter,
    to_gb,
    year_month_key,
)
from app.scraping.session.base import PortalSession, RunDeadline
from app.scraping.types import ExtractionResult, UsageRecord

SubmitHandler = Callable[[int, Mapping[str, str]], str]


class FakeExtractionDriver(ExtractionDriver):
    """
    Random-data driver for tests.

    ``outcomes`` is consumed one entry per call: an ``ExtractionError``
    instance is raised, ``None`` means succeed. When exhausted every call
    succeeds. ``release`` makes calls block until the event is set (or the
    deadline expires), which lets tests hold a run in flight.
    """

    def __init__(
        self,
        *,
        seed: int = 0,
        months: int = 3,
        today: date | None = None,
        outcomes: Iterable[ExtractionError | None] = (),
        release: threading.Event | None = None,
        delay_seconds: float = 0.0,
        source: str = "Fake portal",
    ) -> None:
        self._random = random.Random(seed)
        self._months = months
        self._today = today or datetime.now(timezone.utc).date()
        self._outcomes: deque[ExtractionError | None] = deque(outcomes)
        self._release = release
        self._delay_seconds = delay_seconds
        self._source = source
        self._lock = threading.Lock()
        self.calls = 0
        self.sessions_closed = 0
        self.started = threading.Event()

    def extract(
        self,
        subject_identifier: str,
        month: str | None = None,
        *,
        deadline: RunDeadline,
    ) -> ExtractionResult:
        with self._lock:
            self.calls += 1
            outcome = self._outcomes.popleft() if self._outcomes else None
        self.started.set()
        try:
            if self._release is not None:
                while not self._release.wait(0.01):
                    deadline.check()
            if self._delay_seconds:
                deadline.sleep(self._delay_seconds)
            if outcome is not None:
                raise outcome
            return self._build(subject_identifier, month)
        finally:
            with self._lock:
                self.sessions_closed += 1

    def _build(self, subject_identifier: str, month: str | None) -> ExtractionResult:
        periods = self._periods()
        if month:
            wanted = parse_month_filter(month)
            periods = [period for period in periods if period == wanted]

        result = ExtractionResult(subject_identifier=subject_identifier)
        with self._lock:
            for year, month_number in periods:
                total_bytes = self._random.randrange(0, 50_000_000_000)
                key = year_month_key(year, month_number)
                result.records.append(
                    UsageRecord(
                        year_month=key,
                        source=self._source,
                        year=year,
                        month_name=month_name(month_number),
                        subject_identifier=subject_identifier,
                        connected_time=f"{self._random.randrange(500)} hours",
                        total_bytes=total_bytes,
                        total_gb=to_gb(total_bytes),
                    )
                )
                rows = [
                    (
                        date(year, month_number, day),
                        self._random.randrange(0, 2_000_000_000),
                        f"{self._random.randrange(24)} hours",
                    )
                    for day in range(1, days_in_month(year, month_number) + 1)
                ]
                result.daily[key] = normalize_daily(year=year, month=month_number, rows=rows)
        return result

    def _periods(self) -> list[tuple[int, int]]:
        periods: list[tuple[int, int]] = []
        year, month_number = self._today.year, self._today.month
        for _ in range(self._months):
            periods.append((year, month_number))
            month_number -= 1
            if month_number == 0:
                year, month_number = year - 1, 12
        return sorted(periods)


class FakePortal:
    """
    Scripted portal: URL -> HTML pages plus per-page form handlers.

    A form handler receives ``(form_index, fields)`` and returns the URL the
    submission lands on. Unknown URLs behave like an unreachable host.
    """

    def __init__(self, pages: Mapping[str, str] | None = None) -> None:
        self.pages: dict[str, str] = dict(pages or {})
        self.handlers: dict[str, SubmitHandler] = {}
        self.submissions: list[tuple[str, dict[str, str]]] = []
        self.sessions_opened = 0
        self.close_calls = 0
        self.fail_on_open = False

    def add_page(self, url: str, html: str) -> None:
        self.pages[url] = html

    def on_submit(self, page_url: str, handler: SubmitHandler) -> None:
        self.handlers[page_url] = handler

    def session(self, deadline: RunDeadline) -> "FakePortalSession":
        if self.fail_on_open:
            raise InfrastructureError("Browser launch failed: fake portal offline")
        self.sessions_opened += 1
        return FakePortalSession(portal=self, deadline=deadline)


class FakePortalSession(PortalSession):
    def __init__(self, *, portal: FakePortal, deadline: RunDeadline) -> None:
        super().__init__(deadline=deadline, navigation_timeout_seconds=5.0)
        self._portal = portal

    def _open(self, url: str, timeout_seconds: float) -> tuple[str, str]:
        html = self._portal.pages.get(url)
        if html is None:
            raise InfrastructureError(f"Request to {url} failed: host unreachable")
        return url, html

    def _submit_form(
        self,
        form_index: int,
        fields: dict[str, str],
        timeout_seconds: float,
    ) -> tuple[str, str]:
        page_url = self.current_url or ""
        handler = self._portal.handlers.get(page_url)
        if handler is None:
            raise InfrastructureError(f"Form submission failed on {page_url}: no handler")
        self._portal.submissions.append((page_url, dict(fields)))
        return self._open(handler(form_index, fields), timeout_seconds)

    def _close(self) -> None:
        self._portal.close_calls += 1
