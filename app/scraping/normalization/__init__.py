"""
Usage value normalization exports.
"""

from app.scraping.normalization.usage_normalizer import (
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

__all__ = [
    "BYTES_PER_GB",
    "days_in_month",
    "month_name",
    "normalize_daily",
    "parse_byte_count",
    "parse_month",
    "parse_month_filter",
    "parse_portal_date",
    "to_gb",
    "year_month_key",
]
