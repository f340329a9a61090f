"""
Environment loader for scraper runtime settings and portal credentials.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache

from db.config import load_env_files

from app.scraping.config.models import PortalCredentials, ScraperRuntimeSettings, SessionBackend
from app.scraping.errors import AuthenticationError

_PROFILE_SANITIZER = re.compile(r"[^A-Z0-9]+")


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


@lru_cache(maxsize=1)
def get_scraper_runtime_settings() -> ScraperRuntimeSettings:
    """
    Return cached scraper runtime settings from environment variables.
    """

    load_env_files()
    backend = _get_str_env("SCRAPER_SESSION_BACKEND", SessionBackend.BROWSER).lower()
    if backend not in SessionBackend.ALL:
        raise RuntimeError(
            f"SCRAPER_SESSION_BACKEND '{backend}' is not valid. "
            f"Allowed values: {sorted(SessionBackend.ALL)}."
        )
    return ScraperRuntimeSettings(
        session_backend=backend,
        headless=_get_bool_env("SCRAPER_HEADLESS", True),
        user_agent=_get_str_env(
            "SCRAPER_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0 Safari/537.36",
        ),
        navigation_timeout_seconds=max(
            1.0,
            _get_float_env("SCRAPER_NAVIGATION_TIMEOUT_SECONDS", 60.0),
        ),
        run_timeout_seconds=max(
            1.0,
            _get_float_env("SCRAPER_RUN_TIMEOUT_SECONDS", 300.0),
        ),
        max_retries=max(0, _get_int_env("SCRAPER_MAX_RETRIES", 2)),
        backoff_initial_seconds=max(
            0.0,
            _get_float_env("SCRAPER_BACKOFF_INITIAL_SECONDS", 2.0),
        ),
        backoff_multiplier=max(
            1.0,
            _get_float_env("SCRAPER_BACKOFF_MULTIPLIER", 2.0),
        ),
    )


def credential_env_names(profile: str) -> tuple[str, str]:
    key = _PROFILE_SANITIZER.sub("_", (profile or "default").strip().upper()).strip("_")
    key = key or "DEFAULT"
    return (
        f"SCRAPER_CREDENTIALS_{key}_USERNAME",
        f"SCRAPER_CREDENTIALS_{key}_PASSWORD",
    )


def load_portal_credentials(profile: str) -> PortalCredentials:
    """
    Read the login pair for ``profile`` from the environment.

    Missing values fail as an authentication problem before any I/O happens.
    """

    load_env_files()
    username_var, password_var = credential_env_names(profile)
    username = os.getenv(username_var, "").strip()
    password = os.getenv(password_var, "")
    if not username or not password:
        raise AuthenticationError(
            f"No portal credentials configured for profile '{profile}' "
            f"(set {username_var} and {password_var})."
        )
    return PortalCredentials(profile=profile, username=username, password=password)
