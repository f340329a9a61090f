"""
Normalization of raw portal values into usage records.

Gigabyte values use binary gigabytes (``bytes / 2**30``) rendered with two
decimals and ROUND_HALF_EVEN, so identical byte counts always render the
same string regardless of platform float behaviour.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime
from decimal import ROUND_HALF_EVEN, Decimal

from app.scraping.errors import StructureError
from app.scraping.types import DailyUsageRecord

BYTES_PER_GB = 2**30
_GB_QUANTUM = Decimal("0.01")
_BYTE_SEPARATORS = re.compile(r"[,\s_' ]")
_DIGITS = re.compile(r"^\d+$")

DATE_PATTERNS = [
    "%Y-%m-%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%Y/%m/%d",
]

# Day-first and month-first portals both render dates like 03/04/2024.
_SLASH_DATE = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")
_SLASH_PATTERNS = ("%m/%d/%Y", "%d/%m/%Y")

_MONTH_LOOKUP: dict[str, int] = {}
for _number in range(1, 13):
    _MONTH_LOOKUP[calendar.month_name[_number].lower()] = _number
    _MONTH_LOOKUP[calendar.month_abbr[_number].lower()] = _number


def to_gb(total_bytes: int) -> str:
    """
    Render a byte count as binary gigabytes with exactly two decimals.
    """

    if total_bytes < 0:
        raise ValueError(f"Byte count must be non-negative, got {total_bytes}.")
    value = (Decimal(total_bytes) / Decimal(BYTES_PER_GB)).quantize(
        _GB_QUANTUM,
        rounding=ROUND_HALF_EVEN,
    )
    return f"{value:.2f}"


def parse_byte_count(raw: str) -> int:
    """
    Parse a byte cell such as ``"1,073,741,824"`` into an integer.
    """

    cleaned = _BYTE_SEPARATORS.sub("", raw or "")
    if not _DIGITS.match(cleaned):
        raise StructureError(f"Unparsable byte count: {raw!r}")
    return int(cleaned)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def year_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_name(month: int) -> str:
    return calendar.month_name[month]


def parse_month(raw: str) -> int:
    """
    Resolve ``"March"``, ``"Mar"``, ``"3"`` or ``"03"`` to a month number.
    """

    token = (raw or "").strip().rstrip(".").lower()
    if token.isdigit() and 1 <= int(token) <= 12:
        return int(token)
    resolved = _MONTH_LOOKUP.get(token)
    if resolved is None:
        raise StructureError(f"Unrecognized month value: {raw!r}")
    return resolved


def parse_month_filter(value: str) -> tuple[int, int]:
    """
    Parse a ``YYYY-MM`` month filter.
    """

    match = re.fullmatch(r"\s*(\d{4})-(\d{1,2})\s*", value or "")
    if match is None or not 1 <= int(match.group(2)) <= 12:
        raise ValueError(f"Month filter must look like YYYY-MM, got {value!r}.")
    return int(match.group(1)), int(match.group(2))


def parse_portal_date(raw: str, *, year: int, month: int) -> date:
    """
    Parse a daily-table date cell.

    A bare day number is resolved against the month being read. A slash
    date is read month-first or day-first, whichever lands in that month;
    when neither does the cell raises ``StructureError``.
    """

    text = " ".join((raw or "").split())
    if text.isdigit():
        try:
            return date(year, month, int(text))
        except ValueError as exc:
            raise StructureError(f"Day {text!r} is not valid for {year_month_key(year, month)}") from exc

    if _SLASH_DATE.fullmatch(text):
        for pattern in _SLASH_PATTERNS:
            try:
                candidate = datetime.strptime(text, pattern).date()
            except ValueError:
                continue
            if (candidate.year, candidate.month) == (year, month):
                return candidate
        raise StructureError(f"Date {raw!r} does not fall in {year_month_key(year, month)}")

    for pattern in DATE_PATTERNS:
        try:
            return datetime.strptime(text, pattern).date()
        except ValueError:
            continue
    raise StructureError(f"Unrecognized date value: {raw!r}")


def normalize_daily(
    *,
    year: int,
    month: int,
    rows: list[tuple[date, int, str]],
) -> list[DailyUsageRecord]:
    """
    Build exactly one record per calendar day of the month.

    Rows dated outside the month are dropped, repeated dates are summed and
    days the portal did not list are filled with zero usage.
    """

    totals: dict[int, int] = {}
    connected: dict[int, str] = {}
    for day_value, total_bytes, connected_time in rows:
        if day_value.year != year or day_value.month != month:
            continue
        totals[day_value.day] = totals.get(day_value.day, 0) + total_bytes
        if connected_time and not connected.get(day_value.day):
            connected[day_value.day] = connected_time

    records: list[DailyUsageRecord] = []
    for day in range(1, days_in_month(year, month) + 1):
        total_bytes = totals.get(day, 0)
        records.append(
            DailyUsageRecord(
                date=date(year, month, day).isoformat(),
                total_bytes=total_bytes,
                total_gb=to_gb(total_bytes),
                connected_time=connected.get(day, "0"),
            )
        )
    return records
