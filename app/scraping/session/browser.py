"""
Playwright-backed portal session: one Chromium browser and one isolated
context per run.
"""

from __future__ import annotations

import logging

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from app.scraping.config.models import ScraperRuntimeSettings
from app.scraping.errors import InfrastructureError, RunTimeoutError
from app.scraping.logging_utils import log_event
from app.scraping.session.base import PortalSession, RunDeadline

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]


class BrowserPortalSession(PortalSession):
    def __init__(
        self,
        *,
        settings: ScraperRuntimeSettings,
        deadline: RunDeadline,
    ) -> None:
        super().__init__(
            deadline=deadline,
            navigation_timeout_seconds=settings.navigation_timeout_seconds,
        )
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=settings.headless,
                args=_LAUNCH_ARGS,
            )
            self._context = self._browser.new_context(user_agent=settings.user_agent)
            self._page = self._context.new_page()
        except PlaywrightError as exc:
            self.close()
            raise InfrastructureError(f"Browser launch failed: {exc}") from exc

    def _open(self, url: str, timeout_seconds: float) -> tuple[str, str]:
        page = self._require_page()
        try:
            response = page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=timeout_seconds * 1000,
            )
        except PlaywrightTimeoutError as exc:
            raise self._timeout_error(url, exc) from exc
        except PlaywrightError as exc:
            raise InfrastructureError(f"Navigation to {url} failed: {exc}") from exc

        if response is not None and response.status >= 500:
            raise InfrastructureError(f"Portal returned status={response.status} for {url}")
        return page.url, page.content()

    def _submit_form(
        self,
        form_index: int,
        fields: dict[str, str],
        timeout_seconds: float,
    ) -> tuple[str, str]:
        page = self._require_page()
        form = page.locator("form").nth(form_index)
        try:
            for name, value in fields.items():
                form.locator(f'[name="{name}"]').first.fill(value, timeout=timeout_seconds * 1000)

            submit = form.locator('[type="submit"]')
            try:
                with page.expect_navigation(
                    wait_until="domcontentloaded",
                    timeout=timeout_seconds * 1000,
                ):
                    if submit.count() > 0:
                        submit.first.click()
                    else:
                        form.locator("input").last.press("Enter")
            except PlaywrightTimeoutError:
                # Inline (non-navigating) responses such as validation errors.
                self.deadline.check()
        except PlaywrightTimeoutError as exc:
            raise self._timeout_error(page.url, exc) from exc
        except PlaywrightError as exc:
            raise InfrastructureError(f"Form submission failed on {page.url}: {exc}") from exc
        return page.url, page.content()

    def _close(self) -> None:
        closers = (
            ("context", self._context.close if self._context else None),
            ("browser", self._browser.close if self._browser else None),
            ("playwright", self._playwright.stop if self._playwright else None),
        )
        for resource, closer in closers:
            if closer is None:
                continue
            try:
                closer()
            except PlaywrightError as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "browser_teardown_failed",
                    resource=resource,
                    error=str(exc),
                )
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    def _require_page(self) -> Page:
        if self._page is None:
            raise InfrastructureError("Browser page is not available.")
        return self._page

    def _timeout_error(self, url: str, exc: Exception) -> Exception:
        if self.deadline.cancelled or self.deadline.remaining() <= 0:
            return RunTimeoutError()
        return InfrastructureError(f"Timed out waiting for {url}: {exc}")
