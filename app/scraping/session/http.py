"""
requests-backed portal session for portals that render without JavaScript.

Form submission is rebuilt from the parsed form markup: hidden inputs and
defaults are carried over, then the supplied fields are applied.
"""

from __future__ import annotations

from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag

from app.scraping.config.models import ScraperRuntimeSettings
from app.scraping.errors import InfrastructureError, RunTimeoutError, StructureError
from app.scraping.session.base import PortalSession, RunDeadline

_SKIPPED_INPUT_TYPES = {"submit", "button", "image", "reset", "file"}


class HttpPortalSession(PortalSession):
    def __init__(
        self,
        *,
        settings: ScraperRuntimeSettings,
        deadline: RunDeadline,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(
            deadline=deadline,
            navigation_timeout_seconds=settings.navigation_timeout_seconds,
        )
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": settings.user_agent})

    def _open(self, url: str, timeout_seconds: float) -> tuple[str, str]:
        response = self._send("GET", url, timeout_seconds=timeout_seconds)
        return response.url, response.text

    def _submit_form(
        self,
        form_index: int,
        fields: dict[str, str],
        timeout_seconds: float,
    ) -> tuple[str, str]:
        forms = BeautifulSoup(self.html, "html.parser").find_all("form")
        if form_index >= len(forms):
            raise StructureError(f"Form #{form_index} not present on {self.current_url}")
        form = forms[form_index]

        payload = {**form_defaults(form), **fields}
        method = str(form.get("method") or "get").strip().upper()
        action = urljoin(self.current_url or "", str(form.get("action") or ""))
        if method == "POST":
            response = self._send("POST", action, timeout_seconds=timeout_seconds, data=payload)
        else:
            response = self._send("GET", action, timeout_seconds=timeout_seconds, params=payload)
        return response.url, response.text

    def _close(self) -> None:
        self._session.close()

    def _send(self, method: str, url: str, *, timeout_seconds: float, **kwargs: object) -> requests.Response:
        try:
            response = self._session.request(
                method,
                url,
                timeout=timeout_seconds,
                allow_redirects=True,
                **kwargs,
            )
        except requests.Timeout as exc:
            if self.deadline.cancelled or self.deadline.remaining() <= 0:
                raise RunTimeoutError() from exc
            raise InfrastructureError(f"Timed out requesting {url}: {exc}") from exc
        except requests.RequestException as exc:
            raise InfrastructureError(f"Request to {url} failed: {exc}") from exc

        if response.status_code >= 500:
            raise InfrastructureError(f"Portal returned status={response.status_code} for {url}")
        return response


def form_defaults(form: Tag) -> dict[str, str]:
    """
    Values a browser would submit for ``form`` without user input.
    """

    values: dict[str, str] = {}
    for node in form.find_all(["input", "select", "textarea"]):
        name = node.get("name")
        if not name:
            continue
        if node.name == "input":
            input_type = str(node.get("type") or "text").lower()
            if input_type in _SKIPPED_INPUT_TYPES:
                continue
            if input_type in {"checkbox", "radio"} and not node.has_attr("checked"):
                continue
            values[str(name)] = str(node.get("value") or "")
        elif node.name == "select":
            option = node.find("option", selected=True) or node.find("option")
            values[str(name)] = str(option.get("value", option.get_text(strip=True))) if option else ""
        else:
            values[str(name)] = node.get_text()
    return values
