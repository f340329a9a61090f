"""
Scraping configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field


class SessionBackend:
    BROWSER = "browser"
    HTTP = "http"

    ALL = frozenset({BROWSER, HTTP})


@dataclass(frozen=True)
class ScraperRuntimeSettings:
    """
    Runtime settings shared by every extraction run.
    """

    session_backend: str
    headless: bool
    user_agent: str
    navigation_timeout_seconds: float
    run_timeout_seconds: float
    max_retries: int
    backoff_initial_seconds: float
    backoff_multiplier: float


@dataclass(frozen=True)
class PortalCredentials:
    """
    Login pair for one credential profile. The password never appears in repr.
    """

    profile: str
    username: str
    password: str = field(repr=False)
