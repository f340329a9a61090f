"""
tests/test_scraping_config.py

Environment-driven settings, credential profiles and structured log redaction.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import pytest

from app.config import get_scheduler_settings
from app.scraping.config import (
    credential_env_names,
    get_scraper_runtime_settings,
    load_portal_credentials,
)
from app.scraping.errors import AuthenticationError
from app.scraping.logging_utils import REDACTED, log_event


@pytest.fixture()
def fresh_settings() -> Iterator[None]:
    get_scraper_runtime_settings.cache_clear()
    get_scheduler_settings.cache_clear()
    yield
    get_scraper_runtime_settings.cache_clear()
    get_scheduler_settings.cache_clear()


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    @pytest.mark.parametrize(
        "profile, prefix",
        [
            ("default", "SCRAPER_CREDENTIALS_DEFAULT"),
            ("reseller-east", "SCRAPER_CREDENTIALS_RESELLER_EAST"),
            (" Ops Team ", "SCRAPER_CREDENTIALS_OPS_TEAM"),
            ("", "SCRAPER_CREDENTIALS_DEFAULT"),
        ],
    )
    def test_env_names(self, profile: str, prefix: str) -> None:
        assert credential_env_names(profile) == (f"{prefix}_USERNAME", f"{prefix}_PASSWORD")

    def test_loads_profile(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCRAPER_CREDENTIALS_RESELLER_EAST_USERNAME", " reseller ")
        monkeypatch.setenv("SCRAPER_CREDENTIALS_RESELLER_EAST_PASSWORD", "s3cr3t-value")

        credentials = load_portal_credentials("reseller-east")

        assert credentials.username == "reseller"
        assert credentials.password == "s3cr3t-value"
        assert "s3cr3t-value" not in repr(credentials)

    def test_missing_password_is_authentication_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCRAPER_CREDENTIALS_NIGHTLY_USERNAME", "reseller")
        monkeypatch.delenv("SCRAPER_CREDENTIALS_NIGHTLY_PASSWORD", raising=False)

        with pytest.raises(AuthenticationError) as excinfo:
            load_portal_credentials("nightly")

        assert "SCRAPER_CREDENTIALS_NIGHTLY_PASSWORD" in excinfo.value.message
        assert excinfo.value.error_type == "authentication"


# ---------------------------------------------------------------------------
# Runtime and scheduler settings
# ---------------------------------------------------------------------------


class TestRuntimeSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, fresh_settings: None) -> None:
        for name in (
            "SCRAPER_SESSION_BACKEND",
            "SCRAPER_RUN_TIMEOUT_SECONDS",
            "SCRAPER_MAX_RETRIES",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = get_scraper_runtime_settings()

        assert settings.session_backend == "browser"
        assert settings.run_timeout_seconds == 300.0
        assert settings.max_retries == 2

    def test_overrides_are_clamped(self, monkeypatch: pytest.MonkeyPatch, fresh_settings: None) -> None:
        monkeypatch.setenv("SCRAPER_SESSION_BACKEND", "HTTP")
        monkeypatch.setenv("SCRAPER_MAX_RETRIES", "-4")
        monkeypatch.setenv("SCRAPER_RUN_TIMEOUT_SECONDS", "0.1")
        monkeypatch.setenv("SCRAPER_BACKOFF_MULTIPLIER", "not-a-number")

        settings = get_scraper_runtime_settings()

        assert settings.session_backend == "http"
        assert settings.max_retries == 0
        assert settings.run_timeout_seconds == 1.0
        assert settings.backoff_multiplier == 2.0

    def test_unknown_backend_rejected(self, monkeypatch: pytest.MonkeyPatch, fresh_settings: None) -> None:
        monkeypatch.setenv("SCRAPER_SESSION_BACKEND", "selenium")
        with pytest.raises(RuntimeError):
            get_scraper_runtime_settings()

    def test_scheduler_settings(self, monkeypatch: pytest.MonkeyPatch, fresh_settings: None) -> None:
        monkeypatch.setenv("SCHEDULER_ENABLED", "false")
        monkeypatch.setenv("SCHEDULER_TICK_SECONDS", "15")
        monkeypatch.setenv("SCHEDULER_AUTH_FAILURE_THRESHOLD", "0")

        settings = get_scheduler_settings()

        assert settings.enabled is False
        assert settings.tick_seconds == 15
        assert settings.auth_failure_threshold == 1


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


class TestLogEvent:
    def test_secret_fields_are_masked(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("tests.log_event")
        with caplog.at_level(logging.INFO, logger="tests.log_event"):
            log_event(
                logger,
                logging.INFO,
                "login_attempt",
                username="reseller",
                password="hunter2",
                api_token="abc",
                credential_profile="default",
            )

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["event"] == "login_attempt"
        assert payload["username"] == "reseller"
        assert payload["password"] == REDACTED
        assert payload["api_token"] == REDACTED
        assert payload["credential_profile"] == REDACTED
        assert "hunter2" not in caplog.text
