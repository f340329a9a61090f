"""
Portal markup parsing exports.
"""

from app.scraping.parsing.portal_parsers import (
    DailyRows,
    LoginForm,
    MonthlyRow,
    PortalMarkup,
    SearchForm,
)

__all__ = ["DailyRows", "LoginForm", "MonthlyRow", "PortalMarkup", "SearchForm"]
