"""
tests/test_usage_normalizer.py

Pure-function tests for byte/GB conversion, month helpers and the daily
breakdown normalization. No database, no I/O.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.scraping.errors import StructureError
from app.scraping.normalization import (
    BYTES_PER_GB,
    days_in_month,
    month_name,
    normalize_daily,
    parse_byte_count,
    parse_month,
    parse_month_filter,
    parse_portal_date,
    to_gb,
    year_month_key,
)


# ---------------------------------------------------------------------------
# to_gb
# ---------------------------------------------------------------------------


class TestToGb:
    def test_zero_bytes_renders_two_decimals(self) -> None:
        assert to_gb(0) == "0.00"

    def test_one_binary_gigabyte(self) -> None:
        assert to_gb(BYTES_PER_GB) == "1.00"

    def test_rounds_half_to_even(self) -> None:
        # 0.125 GB and 0.375 GB sit exactly on the rounding boundary.
        assert to_gb(BYTES_PER_GB // 8) == "0.12"
        assert to_gb(3 * BYTES_PER_GB // 8) == "0.38"

    def test_large_values_keep_precision(self) -> None:
        assert to_gb(1234 * BYTES_PER_GB) == "1234.00"

    def test_monotonic_in_bytes(self) -> None:
        samples = [0, 1, 5_000_000, 5_368_709, 5_368_710, BYTES_PER_GB - 1, BYTES_PER_GB, 10**12]
        rendered = [Decimal(to_gb(value)) for value in samples]
        assert rendered == sorted(rendered)

    def test_negative_input_rejected(self) -> None:
        with pytest.raises(ValueError):
            to_gb(-1)


# ---------------------------------------------------------------------------
# Cell and period parsing
# ---------------------------------------------------------------------------


class TestParsing:
    def test_byte_count_accepts_thousands_separators(self) -> None:
        assert parse_byte_count("1,073,741,824") == 1_073_741_824
        assert parse_byte_count(" 2 048 ") == 2048

    @pytest.mark.parametrize("raw", ["12.5", "-5", "", "n/a"])
    def test_byte_count_rejects_non_integers(self, raw: str) -> None:
        with pytest.raises(StructureError):
            parse_byte_count(raw)

    @pytest.mark.parametrize("raw, expected", [("March", 3), ("mar", 3), ("03", 3), ("12", 12), ("Sept", None)])
    def test_parse_month(self, raw: str, expected: int | None) -> None:
        if expected is None:
            with pytest.raises(StructureError):
                parse_month(raw)
        else:
            assert parse_month(raw) == expected

    def test_month_filter(self) -> None:
        assert parse_month_filter("2024-02") == (2024, 2)
        with pytest.raises(ValueError):
            parse_month_filter("2024-13")
        with pytest.raises(ValueError):
            parse_month_filter("Feb 2024")

    def test_portal_date_bare_day_uses_month_context(self) -> None:
        assert parse_portal_date("5", year=2024, month=3) == date(2024, 3, 5)
        assert parse_portal_date("2024-03-07", year=2024, month=3) == date(2024, 3, 7)
        assert parse_portal_date("March 9, 2024", year=2024, month=3) == date(2024, 3, 9)

    def test_portal_date_invalid_day_is_structure_error(self) -> None:
        with pytest.raises(StructureError):
            parse_portal_date("30", year=2023, month=2)

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("03/04/2024", date(2024, 4, 3)),
            ("13/04/2024", date(2024, 4, 13)),
            ("04/03/2024", date(2024, 4, 3)),
            ("04/13/2024", date(2024, 4, 13)),
        ],
    )
    def test_slash_date_resolved_against_month(self, raw: str, expected: date) -> None:
        assert parse_portal_date(raw, year=2024, month=4) == expected

    def test_slash_date_outside_month_is_structure_error(self) -> None:
        with pytest.raises(StructureError):
            parse_portal_date("15/05/2024", year=2024, month=4)

    def test_month_helpers(self) -> None:
        assert year_month_key(2024, 2) == "2024-02"
        assert month_name(2) == "February"
        assert days_in_month(2024, 2) == 29
        assert days_in_month(2023, 2) == 28
        assert days_in_month(2024, 4) == 30
        assert days_in_month(2024, 12) == 31


# ---------------------------------------------------------------------------
# Daily breakdown
# ---------------------------------------------------------------------------


class TestNormalizeDaily:
    def test_one_record_per_day_of_leap_february(self) -> None:
        records = normalize_daily(year=2024, month=2, rows=[])
        assert len(records) == 29
        assert records[0].date == "2024-02-01"
        assert records[-1].date == "2024-02-29"
        assert all(record.total_bytes == 0 and record.total_gb == "0.00" for record in records)
        assert all(record.connected_time == "0" for record in records)

    def test_duplicates_summed_outside_dates_dropped(self) -> None:
        rows = [
            (date(2024, 2, 1), 100, "1 hour"),
            (date(2024, 2, 1), 50, ""),
            (date(2024, 3, 1), 999, "5 hours"),
            (date(2024, 2, 29), BYTES_PER_GB, "2 hours"),
        ]
        records = normalize_daily(year=2024, month=2, rows=rows)

        assert len(records) == 29
        assert records[0].total_bytes == 150
        assert records[0].connected_time == "1 hour"
        assert records[1].total_bytes == 0
        assert records[28].total_gb == "1.00"
        assert sum(record.total_bytes for record in records) == 150 + BYTES_PER_GB

    def test_records_ordered_by_date(self) -> None:
        rows = [(date(2023, 4, day), day, "") for day in (30, 2, 15)]
        records = normalize_daily(year=2023, month=4, rows=rows)
        assert [record.date for record in records] == sorted(record.date for record in records)
        assert len(records) == 30
