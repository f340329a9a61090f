"""
Shared fixtures: a throwaway SQLite database per test and config factories.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import db.models as _models  # noqa: F401  registers all ORM models on Base.metadata
from db.base import Base
from db.models.scraper_config import ScraperConfig
from db.repositories import ScraperConfigRepository
from db.session import build_session_factory


@pytest.fixture()
def engine(tmp_path: Path) -> Iterator[Engine]:
    database = create_engine(
        f"sqlite:///{tmp_path / 'collector.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(database)
    yield database
    database.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def db(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_config(session_factory: sessionmaker[Session]) -> Callable[..., int]:
    """Insert a scraper config and return its id."""

    def _make(
        *,
        name: str = "Fixed broadband portal",
        url: str = "https://portal.example.test/login",
        subject_identifier: str = "alice01",
        is_active: bool = True,
    ) -> int:
        with session_factory() as session:
            config: ScraperConfig = ScraperConfigRepository(session).create(
                name=name,
                url=url,
                subject_identifier=subject_identifier,
                is_active=is_active,
            )
            session.commit()
            return config.id

    return _make
