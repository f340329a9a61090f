"""
Storage layer exports.
"""

from app.scraping.storage.base import ResultStore
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyResultStore, to_run_result

__all__ = ["ResultStore", "SQLAlchemyResultStore", "to_run_result"]
