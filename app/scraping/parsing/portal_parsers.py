"""
BeautifulSoup-based parsing layer for usage portal pages.

Everything here selects on structural anchors (form shape, header cell
meaning, link relations) rather than exact text, so cosmetic markup changes
on the portal do not break extraction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date

from bs4 import BeautifulSoup, Tag

from app.scraping.errors import StructureError
from app.scraping.normalization import parse_byte_count, parse_month, parse_portal_date

ERROR_SELECTORS = [".error", ".alert-danger", "[role=alert]", ".login-error"]
NO_RESULT_SELECTORS = [".no-results", ".empty", ".not-found"]
NO_RESULT_TEXT = re.compile(r"\bno\s+(?:results?|records?|matches?)\b|\bnot\s+found\b", re.IGNORECASE)
NEXT_PAGE_TEXT = re.compile(r"^\s*(?:next|›|»|>)\s*$", re.IGNORECASE)
SEARCH_FIELD_HINTS = ("search", "user", "query", "msisdn", "account")
YEAR_MONTH_REGEX = re.compile(r"(\d{4})\s*[-/ ]\s*([A-Za-z]+|\d{1,2})|([A-Za-z]+)\s+(\d{4})")

MONTHLY_COLUMNS: dict[str, set[str]] = {
    "ym": {"ym", "yearmonth", "period"},
    "year": {"year"},
    "month": {"month", "monthname"},
    "source": {"source"},
    "username": {"username", "user", "subscriber", "account"},
    "msisdn": {"msisdn", "msisdsn", "mobilenumber", "number"},
    "connected_time": {"connectedtime", "connected", "sessiontime", "duration"},
    "total": {"total", "totalbytes", "bytes", "usage", "totalusage"},
}
DAILY_COLUMNS: dict[str, set[str]] = {
    "date": {"date", "day"},
    "connected_time": MONTHLY_COLUMNS["connected_time"],
    "total": MONTHLY_COLUMNS["total"],
}


@dataclass(frozen=True)
class LoginForm:
    index: int
    username_field: str
    password_field: str


@dataclass(frozen=True)
class SearchForm:
    index: int
    field: str


@dataclass(frozen=True)
class MonthlyRow:
    year: int
    month: int
    total_bytes: int
    connected_time: str
    source: str | None = None
    username: str | None = None
    msisdn: str | None = None
    daily_href: str | None = None


@dataclass
class DailyRows:
    rows: list[tuple[date, int, str]] = field(default_factory=list)


class PortalMarkup:
    """
    Deterministic parser utilities for portal documents.
    """

    @staticmethod
    def soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html or "", "html.parser")

    # ── Login ──────────────────────────────────────────────────────────────────

    @classmethod
    def find_login_form(cls, soup: BeautifulSoup) -> LoginForm | None:
        for index, form in enumerate(soup.find_all("form")):
            password = form.find("input", attrs={"type": re.compile("^password$", re.I)})
            if password is None or not password.get("name"):
                continue
            username = None
            for candidate in form.find_all("input"):
                input_type = str(candidate.get("type") or "text").lower()
                if input_type in {"text", "email"} and candidate.get("name"):
                    username = candidate
                    break
            if username is None:
                continue
            return LoginForm(
                index=index,
                username_field=str(username["name"]),
                password_field=str(password["name"]),
            )
        return None

    @classmethod
    def find_error_message(cls, soup: BeautifulSoup) -> str | None:
        for selector in ERROR_SELECTORS:
            for node in soup.select(selector):
                text = cls._clean_text(node.get_text(" ", strip=True))
                if text:
                    return text
        return None

    # ── Search ─────────────────────────────────────────────────────────────────

    @classmethod
    def find_search_form(cls, soup: BeautifulSoup) -> SearchForm | None:
        for index, form in enumerate(soup.find_all("form")):
            if form.find("input", attrs={"type": re.compile("^password$", re.I)}) is not None:
                continue
            search_input = form.find("input", attrs={"type": re.compile("^search$", re.I)})
            if search_input is not None and search_input.get("name"):
                return SearchForm(index=index, field=str(search_input["name"]))
            for candidate in form.find_all("input"):
                name = str(candidate.get("name") or "")
                input_type = str(candidate.get("type") or "text").lower()
                if input_type in {"text", "search", "email", "tel"} and any(
                    hint in name.lower() for hint in SEARCH_FIELD_HINTS
                ):
                    return SearchForm(index=index, field=name)
        return None

    @classmethod
    def has_no_results_marker(cls, soup: BeautifulSoup) -> bool:
        for selector in NO_RESULT_SELECTORS:
            if soup.select_one(selector) is not None:
                return True
        body = soup.body or soup
        return NO_RESULT_TEXT.search(body.get_text(" ", strip=True)) is not None

    @classmethod
    def find_subject_link(cls, soup: BeautifulSoup, subject_identifier: str) -> str | None:
        """
        Link to the subject's detail page when search returns a result list.
        """

        wanted = subject_identifier.strip().casefold()
        for anchor in soup.find_all("a", href=True):
            if cls._clean_text(anchor.get_text(" ", strip=True)).casefold() == wanted:
                return str(anchor["href"])
        return None

    @classmethod
    def find_next_page_href(cls, soup: BeautifulSoup) -> str | None:
        anchor = soup.find("a", attrs={"rel": "next"}, href=True)
        if anchor is not None:
            return str(anchor["href"])
        for container in soup.select(".pagination, .pager, nav"):
            for candidate in container.find_all("a", href=True):
                label = candidate.get_text(" ", strip=True) or str(candidate.get("aria-label") or "")
                if NEXT_PAGE_TEXT.match(label):
                    return str(candidate["href"])
        return None

    # ── Monthly usage ──────────────────────────────────────────────────────────

    @classmethod
    def find_usage_table(cls, soup: BeautifulSoup, selector: str | None = None) -> Tag | None:
        if selector:
            node = soup.select_one(selector)
            if node is None:
                return None
            return node if node.name == "table" else node.find("table")

        for table in soup.find_all("table"):
            columns = cls._column_map(table, MONTHLY_COLUMNS)
            has_period = "ym" in columns or {"year", "month"} <= columns.keys()
            if has_period and "total" in columns:
                return table
        return None

    @classmethod
    def parse_usage_table(cls, table: Tag) -> list[MonthlyRow]:
        columns = cls._column_map(table, MONTHLY_COLUMNS)
        if "total" not in columns or not ("ym" in columns or {"year", "month"} <= columns.keys()):
            raise StructureError("Monthly usage table is missing its period or total columns.")

        rows: list[MonthlyRow] = []
        for row in cls._data_rows(table):
            cells = row.find_all(["td", "th"])
            if not cells:
                continue
            values = {key: cls._cell_text(cells, position) for key, position in columns.items()}
            if not values.get("total"):
                continue
            year, month = cls._resolve_period(values)
            link = row.find("a", href=True)
            rows.append(
                MonthlyRow(
                    year=year,
                    month=month,
                    total_bytes=parse_byte_count(values["total"]),
                    connected_time=values.get("connected_time") or "",
                    source=values.get("source") or None,
                    username=values.get("username") or None,
                    msisdn=values.get("msisdn") or None,
                    daily_href=str(link["href"]) if link is not None else None,
                )
            )
        return rows

    # ── Daily breakdown ────────────────────────────────────────────────────────

    @classmethod
    def find_daily_table(cls, soup: BeautifulSoup) -> Tag | None:
        for table in soup.find_all("table"):
            columns = cls._column_map(table, DAILY_COLUMNS)
            if {"date", "total"} <= columns.keys():
                return table
        return None

    @classmethod
    def parse_daily_table(cls, table: Tag, *, year: int, month: int) -> DailyRows:
        columns = cls._column_map(table, DAILY_COLUMNS)
        if not {"date", "total"} <= columns.keys():
            raise StructureError("Daily usage table is missing its date or total columns.")

        parsed = DailyRows()
        for row in cls._data_rows(table):
            cells = row.find_all(["td", "th"])
            raw_date = cls._cell_text(cells, columns["date"])
            raw_total = cls._cell_text(cells, columns["total"])
            if not raw_date or not raw_total:
                continue
            parsed.rows.append(
                (
                    parse_portal_date(raw_date, year=year, month=month),
                    parse_byte_count(raw_total),
                    cls._cell_text(cells, columns.get("connected_time")),
                )
            )
        return parsed

    # ── Helpers ────────────────────────────────────────────────────────────────

    @staticmethod
    def _normalize_header(text: str) -> str:
        return re.sub(r"[^a-z0-9]", "", text.lower())

    @classmethod
    def _header_cells(cls, table: Tag) -> list[Tag]:
        head = table.find("thead")
        if head is not None:
            header_row = head.find("tr")
            if header_row is not None:
                return header_row.find_all(["th", "td"])
        for row in table.find_all("tr"):
            headers = row.find_all("th")
            if headers:
                return row.find_all(["th", "td"])
        first = table.find("tr")
        return first.find_all(["th", "td"]) if first is not None else []

    @classmethod
    def _column_map(cls, table: Tag, aliases: dict[str, set[str]]) -> dict[str, int]:
        positions: dict[str, int] = {}
        for position, cell in enumerate(cls._header_cells(table)):
            normalized = cls._normalize_header(cell.get_text(" ", strip=True))
            for key, names in aliases.items():
                if normalized in names and key not in positions:
                    positions[key] = position
                    break
        return positions

    @classmethod
    def _data_rows(cls, table: Tag) -> list[Tag]:
        header_cells = cls._header_cells(table)
        header_row = header_cells[0].find_parent("tr") if header_cells else None
        body = table.find("tbody")
        rows = body.find_all("tr") if body is not None else table.find_all("tr")
        return [row for row in rows if row is not header_row and row.find("td") is not None]

    @classmethod
    def _cell_text(cls, cells: list[Tag], position: int | None) -> str:
        if position is None or position >= len(cells):
            return ""
        return cls._clean_text(cells[position].get_text(" ", strip=True))

    @classmethod
    def _resolve_period(cls, values: dict[str, str]) -> tuple[int, int]:
        if values.get("year") and values.get("month"):
            year_text = values["year"]
            if not year_text.isdigit():
                raise StructureError(f"Unparsable year value: {year_text!r}")
            return int(year_text), parse_month(values["month"])

        raw = values.get("ym", "")
        match = YEAR_MONTH_REGEX.search(raw)
        if match is None:
            raise StructureError(f"Unparsable period value: {raw!r}")
        if match.group(1):
            return int(match.group(1)), parse_month(match.group(2))
        return int(match.group(4)), parse_month(match.group(3))

    @staticmethod
    def _clean_text(value: str) -> str:
        return re.sub(r"\s+", " ", value).strip()
