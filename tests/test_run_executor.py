"""
tests/test_run_executor.py

RunExecutor never raises: every outcome, including timeouts and
unexpected exceptions, becomes exactly one RunResult.
"""

from __future__ import annotations

import threading
import time
from datetime import date, datetime, timezone

import pytest

from app.scraping.base import ExtractionDriver
from app.scraping.config import ScraperRuntimeSettings
from app.scraping.engine import UNEXPECTED_ERROR_TYPE, RunExecutor
from app.scraping.errors import AuthenticationError, InfrastructureError, NotFoundError, StructureError
from app.scraping.testing import FakeExtractionDriver
from app.scraping.types import ScrapeTarget

EXECUTED_AT = datetime(2024, 3, 10, 8, 0, tzinfo=timezone.utc)


def _settings(
    *,
    run_timeout_seconds: float = 5.0,
    max_retries: int = 2,
    backoff_initial_seconds: float = 0.0,
) -> ScraperRuntimeSettings:
    return ScraperRuntimeSettings(
        session_backend="http",
        headless=True,
        user_agent="collector-tests",
        navigation_timeout_seconds=5.0,
        run_timeout_seconds=run_timeout_seconds,
        max_retries=max_retries,
        backoff_initial_seconds=backoff_initial_seconds,
        backoff_multiplier=2.0,
    )


def _executor(driver: ExtractionDriver, **settings: float) -> RunExecutor:
    return RunExecutor(
        settings=_settings(**settings),  # type: ignore[arg-type]
        driver_factory=lambda target: driver,
        clock=lambda: EXECUTED_AT,
    )


@pytest.fixture()
def target() -> ScrapeTarget:
    return ScrapeTarget(config_id=3, name="Fixed", url="https://portal.test/login", subject_identifier="alice01")


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestOutcomes:
    def test_success_carries_payload(self, target: ScrapeTarget) -> None:
        driver = FakeExtractionDriver(seed=1, months=3, today=date(2024, 3, 10))
        result = _executor(driver).run(target)

        assert result.success is True
        assert result.scraper_config_id == 3
        assert result.execution_time == EXECUTED_AT
        assert result.error_message is None
        assert result.error_type is None
        assert result.attempts == 1
        assert result.duration_ms >= 0
        assert [record["yearMonth"] for record in result.result_data["records"]] == [
            "2024-01",
            "2024-02",
            "2024-03",
        ]

    def test_month_is_forwarded(self, target: ScrapeTarget) -> None:
        driver = FakeExtractionDriver(seed=1, months=3, today=date(2024, 3, 10))
        result = _executor(driver).run(target, month="2024-02")
        assert [record["yearMonth"] for record in result.result_data["records"]] == ["2024-02"]
        assert len(result.result_data["daily"]["2024-02"]) == 29

    @pytest.mark.parametrize(
        "error, expected_type",
        [
            (NotFoundError("No results found for subject: alice01"), "not_found"),
            (AuthenticationError("Login failed: Invalid credentials"), "authentication"),
            (StructureError("Usage table not found"), "structure"),
        ],
    )
    def test_typed_failures_are_not_retried(self, target: ScrapeTarget, error, expected_type: str) -> None:
        driver = FakeExtractionDriver(outcomes=[error])
        result = _executor(driver).run(target)

        assert result.success is False
        assert result.result_data is None
        assert result.error_type == expected_type
        assert result.error_message == error.message
        assert result.attempts == 1
        assert driver.calls == 1

    def test_unexpected_exception_captured(self, target: ScrapeTarget) -> None:
        class _Exploding(ExtractionDriver):
            def extract(self, subject_identifier, month=None, *, deadline):
                raise KeyError("boom")

        result = _executor(_Exploding()).run(target)

        assert result.success is False
        assert result.error_type == UNEXPECTED_ERROR_TYPE
        assert "KeyError" in (result.error_message or "")

    def test_driver_factory_failure_captured(self, target: ScrapeTarget) -> None:
        def _factory(_: ScrapeTarget) -> ExtractionDriver:
            raise RuntimeError("no driver")

        executor = RunExecutor(settings=_settings(), driver_factory=_factory, clock=lambda: EXECUTED_AT)
        result = executor.run(target)
        assert result.success is False
        assert result.error_type == UNEXPECTED_ERROR_TYPE


class TestRetryEnvelope:
    def test_infrastructure_retries_collapse_into_one_result(self, target: ScrapeTarget) -> None:
        driver = FakeExtractionDriver(
            outcomes=[InfrastructureError("Browser launch failed"), InfrastructureError("Browser launch failed")],
        )
        result = _executor(driver).run(target)

        assert result.success is True
        assert result.attempts == 3
        assert driver.calls == 3

    def test_exhausted_retries_report_infrastructure(self, target: ScrapeTarget) -> None:
        driver = FakeExtractionDriver(outcomes=[InfrastructureError("unreachable")] * 5)
        result = _executor(driver, max_retries=2).run(target)

        assert result.success is False
        assert result.error_type == "infrastructure"
        assert result.error_message == "unreachable"
        assert result.attempts == 3
        assert driver.calls == 3

    def test_backoff_longer_than_budget_stops_retrying(self, target: ScrapeTarget) -> None:
        driver = FakeExtractionDriver(outcomes=[InfrastructureError("unreachable")] * 5)
        result = _executor(driver, backoff_initial_seconds=60.0).run(target)

        assert result.error_type == "infrastructure"
        assert result.attempts == 1


class TestTimeout:
    def test_run_exceeding_budget_records_timeout(self, target: ScrapeTarget) -> None:
        release = threading.Event()
        driver = FakeExtractionDriver(release=release)
        started = time.monotonic()

        result = _executor(driver, run_timeout_seconds=0.2).run(target)

        assert time.monotonic() - started < 2.0
        assert result.success is False
        assert result.error_message == "timeout"
        assert result.error_type == "timeout"
        # The abandoned worker notices the cancellation and tears down its session.
        assert _wait_for(lambda: driver.sessions_closed == 1)
        release.set()

    def test_worker_tracked_until_it_exits(self, target: ScrapeTarget) -> None:
        release = threading.Event()
        driver = FakeExtractionDriver(release=release)
        executor = _executor(driver, run_timeout_seconds=0.2)

        assert executor.worker_active(target.config_id) is False
        executor.run(target)

        assert _wait_for(lambda: not executor.worker_active(target.config_id))
        assert driver.sessions_closed == 1
        release.set()
