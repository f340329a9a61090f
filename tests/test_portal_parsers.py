"""
tests/test_portal_parsers.py

Structural-anchor parsing of portal markup and HTTP form reconstruction.
"""

from __future__ import annotations

from datetime import date
from typing import Any

import pytest
import requests

from app.scraping.config import ScraperRuntimeSettings
from app.scraping.errors import InfrastructureError, StructureError
from app.scraping.normalization import normalize_daily
from app.scraping.parsing import PortalMarkup
from app.scraping.session import RunDeadline
from app.scraping.session.http import HttpPortalSession, form_defaults


def _soup(html: str):
    return PortalMarkup.soup(html)


class TestLoginAndSearchForms:
    def test_login_form_is_first_form_with_password(self) -> None:
        html = """
        <form id="newsletter"><input type="email" name="newsletter_email"></form>
        <form id="login">
          <input type="hidden" name="csrf" value="abc">
          <input type="email" name="login_email">
          <input type="password" name="pwd">
        </form>
        """
        form = PortalMarkup.find_login_form(_soup(html))
        assert form is not None
        assert form.index == 1
        assert form.username_field == "login_email"
        assert form.password_field == "pwd"

    def test_no_login_form(self) -> None:
        assert PortalMarkup.find_login_form(_soup("<form><input name='q'></form>")) is None

    @pytest.mark.parametrize(
        "snippet",
        [
            "<div class='error'>Bad password</div>",
            "<p class='alert alert-danger'>Bad password</p>",
            "<span role='alert'>Bad password</span>",
            "<div class='login-error'>Bad password</div>",
        ],
    )
    def test_error_indicators(self, snippet: str) -> None:
        assert PortalMarkup.find_error_message(_soup(snippet)) == "Bad password"

    def test_empty_error_container_ignored(self) -> None:
        assert PortalMarkup.find_error_message(_soup("<div class='error'>  </div>")) is None

    def test_search_form_by_input_name_hint(self) -> None:
        html = """
        <form><input type="text" name="user_name"><input type="password" name="p"></form>
        <form><input type="text" name="SearchUser"></form>
        """
        form = PortalMarkup.find_search_form(_soup(html))
        assert form is not None
        assert form.index == 1
        assert form.field == "SearchUser"

    def test_no_results_by_text(self) -> None:
        assert PortalMarkup.has_no_results_marker(_soup("<body><p>Usage history</p></body>")) is False
        assert PortalMarkup.has_no_results_marker(_soup("<body><p>No records</p></body>")) is True
        assert PortalMarkup.has_no_results_marker(_soup("<body><p>Subscriber not found</p></body>")) is True

    def test_subject_link_matches_text(self) -> None:
        html = "<ul><li><a href='/u/1'>bob</a></li><li><a href='/u/2'> Alice01 </a></li></ul>"
        assert PortalMarkup.find_subject_link(_soup(html), "alice01") == "/u/2"

    def test_next_page_in_pagination_container(self) -> None:
        html = "<nav><a href='?p=1'>1</a><a href='?p=2'>&raquo;</a></nav>"
        assert PortalMarkup.find_next_page_href(_soup(html)) == "?p=2"


class TestUsageTable:
    def test_header_matching_ignores_case_and_punctuation(self) -> None:
        html = """
        <table><tr><td>unrelated</td></tr></table>
        <table>
          <tr><th>YM</th><th>MSISDN</th><th>Connected-Time</th><th>TOTAL</th></tr>
          <tr><td>2023-11</td><td>0244000000</td><td>10 hours</td><td>1,000</td></tr>
          <tr><td>Dec 2023</td><td></td><td>12 hours</td><td>2 000</td></tr>
        </table>
        """
        soup = _soup(html)
        table = PortalMarkup.find_usage_table(soup)
        assert table is not None
        rows = PortalMarkup.parse_usage_table(table)
        assert [(row.year, row.month, row.total_bytes) for row in rows] == [(2023, 11, 1000), (2023, 12, 2000)]
        assert rows[0].msisdn == "0244000000"
        assert rows[1].msisdn is None
        assert rows[0].connected_time == "10 hours"

    def test_selector_hint_wins(self) -> None:
        html = """
        <table id="a"><tr><th>Year</th><th>Month</th><th>Total</th></tr></table>
        <div id="usage"><table><tr><th>Year</th><th>Month</th><th>Bytes</th></tr>
          <tr><td>2024</td><td>Jan</td><td>7</td></tr></table></div>
        """
        table = PortalMarkup.find_usage_table(_soup(html), "#usage")
        assert table is not None
        assert PortalMarkup.parse_usage_table(table)[0].total_bytes == 7

    def test_selector_missing_returns_none(self) -> None:
        assert PortalMarkup.find_usage_table(_soup("<table></table>"), "#nope") is None

    def test_non_integer_bytes_is_structure_error(self) -> None:
        html = """
        <table><tr><th>Year</th><th>Month</th><th>Total</th></tr>
        <tr><td>2024</td><td>May</td><td>1.5 GB</td></tr></table>
        """
        table = PortalMarkup.find_usage_table(_soup(html))
        assert table is not None
        with pytest.raises(StructureError):
            PortalMarkup.parse_usage_table(table)

    def test_table_without_total_column_rejected(self) -> None:
        html = "<table><tr><th>Year</th><th>Month</th></tr><tr><td>2024</td><td>May</td></tr></table>"
        soup = _soup(html)
        assert PortalMarkup.find_usage_table(soup) is None
        with pytest.raises(StructureError):
            PortalMarkup.parse_usage_table(soup.find("table"))

    def test_daily_table(self) -> None:
        html = """
        <table><tr><th>Date</th><th>Total</th></tr>
          <tr><td>1</td><td>10</td></tr>
          <tr><td>2024-06-02</td><td>20</td></tr>
        </table>
        """
        table = PortalMarkup.find_daily_table(_soup(html))
        assert table is not None
        parsed = PortalMarkup.parse_daily_table(table, year=2024, month=6)
        assert [(row[0].day, row[1]) for row in parsed.rows] == [(1, 10), (2, 20)]

    def test_day_first_daily_table_keeps_every_row(self) -> None:
        html = """
        <table><tr><th>Date</th><th>Total Bytes</th></tr>
          <tr><td>03/04/2024</td><td>1000</td></tr>
          <tr><td>13/04/2024</td><td>2000</td></tr>
        </table>
        """
        table = PortalMarkup.find_daily_table(_soup(html))
        assert table is not None
        parsed = PortalMarkup.parse_daily_table(table, year=2024, month=4)

        assert [row[:2] for row in parsed.rows] == [(date(2024, 4, 3), 1000), (date(2024, 4, 13), 2000)]
        records = normalize_daily(year=2024, month=4, rows=parsed.rows)
        assert records[2].total_bytes == 1000
        assert sum(record.total_bytes for record in records) == 3000

    def test_daily_row_from_another_month_is_structure_error(self) -> None:
        html = """
        <table><tr><th>Date</th><th>Total</th></tr>
          <tr><td>15/05/2024</td><td>1000</td></tr>
        </table>
        """
        table = PortalMarkup.find_daily_table(_soup(html))
        with pytest.raises(StructureError):
            PortalMarkup.parse_daily_table(table, year=2024, month=4)


# ---------------------------------------------------------------------------
# HTTP backend form reconstruction
# ---------------------------------------------------------------------------


class _Response:
    def __init__(self, url: str, text: str, status_code: int = 200) -> None:
        self.url = url
        self.text = text
        self.status_code = status_code


class _RecordingSession:
    """Minimal stand-in for requests.Session that serves canned pages."""

    def __init__(self, pages: dict[str, str], *, fail: bool = False) -> None:
        self.headers: dict[str, str] = {}
        self.pages = pages
        self.fail = fail
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> _Response:
        if self.fail:
            raise requests.ConnectionError("connection refused")
        self.requests.append((method, url, kwargs))
        return _Response(url, self.pages.get(url, "<html></html>"))

    def close(self) -> None:
        self.closed = True


def _settings() -> ScraperRuntimeSettings:
    return ScraperRuntimeSettings(
        session_backend="http",
        headless=True,
        user_agent="collector-tests",
        navigation_timeout_seconds=10.0,
        run_timeout_seconds=30.0,
        max_retries=0,
        backoff_initial_seconds=0.0,
        backoff_multiplier=1.0,
    )


class TestHttpPortalSession:
    def test_form_defaults_keep_hidden_and_selected_values(self) -> None:
        form = _soup(
            """
            <form>
              <input type="hidden" name="token" value="t1">
              <input type="checkbox" name="remember" value="yes">
              <input type="checkbox" name="terms" value="ok" checked>
              <input type="submit" name="go" value="Go">
              <select name="lang"><option value="en">English</option><option value="fr" selected>French</option></select>
              <textarea name="note">hi</textarea>
            </form>
            """
        ).find("form")
        assert form_defaults(form) == {"token": "t1", "terms": "ok", "lang": "fr", "note": "hi"}

    def test_post_form_merges_fields_over_defaults(self) -> None:
        login = (
            "<form action='/auth' method='post'><input type='hidden' name='csrf' value='x1'>"
            "<input name='u'><input type='password' name='p'></form>"
        )
        transport = _RecordingSession({"https://portal.test/login": login})
        session = HttpPortalSession(settings=_settings(), deadline=RunDeadline(30), session=transport)

        session.open("https://portal.test/login")
        session.submit_form(0, {"u": "reseller", "p": "pw"})
        session.close()

        method, url, kwargs = transport.requests[-1]
        assert method == "POST"
        assert url == "https://portal.test/auth"
        assert kwargs["data"] == {"csrf": "x1", "u": "reseller", "p": "pw"}
        assert transport.headers["User-Agent"] == "collector-tests"
        assert transport.closed is True

    def test_connection_errors_are_infrastructure_errors(self) -> None:
        transport = _RecordingSession({}, fail=True)
        session = HttpPortalSession(settings=_settings(), deadline=RunDeadline(30), session=transport)
        with pytest.raises(InfrastructureError):
            session.open("https://portal.test/login")

    def test_missing_form_is_structure_error(self) -> None:
        transport = _RecordingSession({"https://portal.test/": "<p>no forms</p>"})
        session = HttpPortalSession(settings=_settings(), deadline=RunDeadline(30), session=transport)
        session.open("https://portal.test/")
        with pytest.raises(StructureError):
            session.submit_form(0, {"q": "x"})

    def test_close_is_idempotent(self) -> None:
        transport = _RecordingSession({})
        session = HttpPortalSession(settings=_settings(), deadline=RunDeadline(30), session=transport)
        session.close()
        session.close()
        assert session.closed is True
        with pytest.raises(InfrastructureError):
            session.open("https://portal.test/")
