"""
Extraction driver for session-based broadband usage portals.

The run is a fixed sequence of phases, each a plain function that receives
the run's ``PortalSession``: authenticate, locate the subject, read the
monthly history (following pagination), then read each month's daily
breakdown. The session is released in ``UsagePortalDriver.extract``
whatever happens in between.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from app.scraping.base import ExtractionDriver
from app.scraping.config import PortalCredentials, load_portal_credentials
from app.scraping.errors import (
    AuthenticationError,
    ExtractionError,
    InfrastructureError,
    NotFoundError,
    PartialExtractionError,
    StructureError,
)
from app.scraping.logging_utils import log_event
from app.scraping.normalization import (
    month_name,
    normalize_daily,
    parse_month_filter,
    to_gb,
    year_month_key,
)
from app.scraping.parsing import MonthlyRow, PortalMarkup
from app.scraping.session import PortalSession, RunDeadline
from app.scraping.types import DailyUsageRecord, ExtractionResult, ScrapeTarget, UsageRecord

logger = logging.getLogger(__name__)

MAX_HISTORY_PAGES = 50

SessionFactory = Callable[[RunDeadline], PortalSession]
CredentialLoader = Callable[[str], PortalCredentials]


@dataclass(frozen=True)
class MonthlyEntry:
    record: UsageRecord
    daily_url: str | None


def authenticate(session: PortalSession, login_url: str, credentials: PortalCredentials) -> str:
    """
    Submit the stored credentials to the portal login form.

    Portals that already consider the session authenticated (no login form)
    are accepted as-is.
    """

    html = session.open(login_url)
    login_form = PortalMarkup.find_login_form(PortalMarkup.soup(html))
    if login_form is None:
        log_event(logger, logging.INFO, "portal_login_form_absent", url=session.current_url)
        return html

    html = session.submit_form(
        login_form.index,
        {
            login_form.username_field: credentials.username,
            login_form.password_field: credentials.password,
        },
    )
    soup = PortalMarkup.soup(html)
    message = PortalMarkup.find_error_message(soup)
    if message:
        raise AuthenticationError(f"Login failed: {message}")
    if PortalMarkup.find_login_form(soup) is not None:
        raise AuthenticationError("Login failed: login form still displayed after submit")
    return html


def locate_subject(
    session: PortalSession,
    html: str,
    subject_identifier: str,
    *,
    selector: str | None = None,
) -> BeautifulSoup:
    """
    Search for the subject and return the page holding its usage history.
    """

    search_form = PortalMarkup.find_search_form(PortalMarkup.soup(html))
    if search_form is None:
        raise StructureError(f"No search form found on {session.current_url}")

    soup = PortalMarkup.soup(session.submit_form(search_form.index, {search_form.field: subject_identifier}))
    if PortalMarkup.find_usage_table(soup, selector) is not None:
        return soup

    detail_href = PortalMarkup.find_subject_link(soup, subject_identifier)
    if detail_href is not None:
        soup = PortalMarkup.soup(session.follow(detail_href))
        if PortalMarkup.find_usage_table(soup, selector) is not None:
            return soup

    if PortalMarkup.has_no_results_marker(soup):
        raise NotFoundError(f"No results found for subject: {subject_identifier}")
    raise StructureError(f"Usage table not found for subject on {session.current_url}")


def extract_monthly(
    session: PortalSession,
    soup: BeautifulSoup,
    target: ScrapeTarget,
    subject_identifier: str,
    *,
    month_filter: tuple[int, int] | None = None,
) -> list[MonthlyEntry]:
    """
    Read every history page into usage records, oldest month first.
    """

    rows: list[tuple[MonthlyRow, str | None]] = []
    visited: set[str] = set()
    for _ in range(MAX_HISTORY_PAGES):
        table = PortalMarkup.find_usage_table(soup, target.selector)
        if table is None:
            raise StructureError(f"Usage table disappeared on {session.current_url}")
        page_url = session.current_url or target.url
        visited.add(page_url)
        for row in PortalMarkup.parse_usage_table(table):
            daily_url = urljoin(page_url, row.daily_href) if row.daily_href else None
            rows.append((row, daily_url))

        next_href = PortalMarkup.find_next_page_href(soup)
        if next_href is None or urljoin(page_url, next_href) in visited:
            break
        soup = PortalMarkup.soup(session.follow(next_href))

    entries: dict[str, MonthlyEntry] = {}
    for row, daily_url in rows:
        if month_filter is not None and (row.year, row.month) != month_filter:
            continue
        key = year_month_key(row.year, row.month)
        if key in entries:
            continue
        entries[key] = MonthlyEntry(
            record=UsageRecord(
                year_month=key,
                source=row.source or target.name,
                year=row.year,
                month_name=month_name(row.month),
                subject_identifier=row.username or subject_identifier,
                msisdn=row.msisdn,
                connected_time=row.connected_time,
                total_bytes=row.total_bytes,
                total_gb=to_gb(row.total_bytes),
            ),
            daily_url=daily_url,
        )
    return [entries[key] for key in sorted(entries)]


def read_daily_breakdown(session: PortalSession, entry: MonthlyEntry) -> list[DailyUsageRecord]:
    """
    Read one month's day-level table.

    Raises ``PartialExtractionError`` when the breakdown is unavailable; the
    caller records a gap for that month instead of failing the run.
    """

    record = entry.record
    if entry.daily_url is None:
        raise PartialExtractionError(
            f"No daily breakdown link for {record.year_month}",
            year_month=record.year_month,
        )
    try:
        soup = PortalMarkup.soup(session.open(entry.daily_url))
        table = PortalMarkup.find_daily_table(soup)
        if table is None:
            raise StructureError(f"Daily table not found on {session.current_url}")
        parsed = PortalMarkup.parse_daily_table(table, year=record.year, month=record.month)
    except (StructureError, InfrastructureError) as exc:
        raise PartialExtractionError(
            f"Daily breakdown unavailable for {record.year_month}: {exc.message}",
            year_month=record.year_month,
        ) from exc
    return normalize_daily(year=record.year, month=record.month, rows=parsed.rows)


def extract_daily(
    session: PortalSession,
    entries: list[MonthlyEntry],
) -> tuple[dict[str, list[DailyUsageRecord]], list[str]]:
    daily: dict[str, list[DailyUsageRecord]] = {}
    gaps: list[str] = []
    for entry in entries:
        try:
            daily[entry.record.year_month] = read_daily_breakdown(session, entry)
        except PartialExtractionError as exc:
            daily[exc.year_month] = []
            gaps.append(exc.year_month)
            log_event(
                logger,
                logging.WARNING,
                "daily_breakdown_gap",
                year_month=exc.year_month,
                error=exc.message,
            )
    return daily, gaps


class UsagePortalDriver(ExtractionDriver):
    """
    Real extraction driver for one configured portal target.
    """

    def __init__(
        self,
        *,
        target: ScrapeTarget,
        session_factory: SessionFactory,
        credential_loader: CredentialLoader = load_portal_credentials,
    ) -> None:
        self.target = target
        self._session_factory = session_factory
        self._credential_loader = credential_loader

    def extract(
        self,
        subject_identifier: str,
        month: str | None = None,
        *,
        deadline: RunDeadline,
    ) -> ExtractionResult:
        month_filter = parse_month_filter(month) if month else None
        credentials = self._credential_loader(self.target.credential_profile)

        session = self._acquire_session(deadline)
        try:
            log_event(logger, logging.INFO, "portal_login_started", target=self.target.name)
            html = authenticate(session, self.target.url, credentials)

            log_event(
                logger,
                logging.INFO,
                "portal_search_started",
                target=self.target.name,
                subject=subject_identifier,
            )
            soup = locate_subject(
                session,
                html,
                subject_identifier,
                selector=self.target.selector,
            )

            entries = extract_monthly(
                session,
                soup,
                self.target,
                subject_identifier,
                month_filter=month_filter,
            )
            log_event(
                logger,
                logging.INFO,
                "portal_monthly_extracted",
                target=self.target.name,
                months=len(entries),
            )

            daily, gaps = extract_daily(session, entries)
            return ExtractionResult(
                subject_identifier=subject_identifier,
                records=[entry.record for entry in entries],
                daily=daily,
                gaps=gaps,
            )
        finally:
            session.close()

    def _acquire_session(self, deadline: RunDeadline) -> PortalSession:
        try:
            return self._session_factory(deadline)
        except ExtractionError:
            raise
        except Exception as exc:
            raise InfrastructureError(f"Could not acquire portal session: {exc}") from exc
