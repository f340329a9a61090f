"""
Portal session abstraction.

A session is one isolated, authenticated-or-not browsing context scoped to a
single run. Every I/O call checks the run deadline first and bounds its own
timeout by the time the run has left.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from urllib.parse import urljoin

from app.scraping.errors import InfrastructureError, RunTimeoutError


class RunDeadline:
    """
    Time budget and cancellation flag shared by one run's phases.
    """

    def __init__(
        self,
        budget_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = clock() + max(0.0, budget_seconds)
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def check(self) -> None:
        if self._cancelled.is_set() or self.remaining() <= 0:
            raise RunTimeoutError()

    def bound(self, timeout_seconds: float) -> float:
        self.check()
        return min(timeout_seconds, self.remaining())

    def sleep(self, seconds: float) -> None:
        """
        Wait up to ``seconds``, waking early on cancellation.
        """

        self.check()
        self._cancelled.wait(min(seconds, self.remaining()))
        self.check()


class PortalSession(ABC):
    """
    Base class for one run's browsing context.

    Subclasses implement the raw I/O; this class owns deadline checks, the
    current URL / document state and idempotent teardown.
    """

    def __init__(self, *, deadline: RunDeadline, navigation_timeout_seconds: float) -> None:
        self.deadline = deadline
        self.navigation_timeout_seconds = navigation_timeout_seconds
        self.current_url: str | None = None
        self.html: str = ""
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self, url: str) -> str:
        timeout = self._begin_io()
        url, html = self._open(url, timeout)
        return self._remember(url, html)

    def follow(self, href: str) -> str:
        return self.open(urljoin(self.current_url or "", href))

    def submit_form(self, form_index: int, fields: Mapping[str, str]) -> str:
        """
        Fill ``fields`` (keyed by input name) in the ``form_index``-th form of
        the current document and submit it.
        """

        timeout = self._begin_io()
        url, html = self._submit_form(form_index, dict(fields), timeout)
        return self._remember(url, html)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._close()

    def __enter__(self) -> "PortalSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _begin_io(self) -> float:
        if self._closed:
            raise InfrastructureError("Portal session already closed.")
        return self.deadline.bound(self.navigation_timeout_seconds)

    def _remember(self, url: str, html: str) -> str:
        self.current_url = url
        self.html = html
        return html

    @abstractmethod
    def _open(self, url: str, timeout_seconds: float) -> tuple[str, str]:
        """
        Navigate to ``url`` and return ``(final_url, html)``.
        """

    @abstractmethod
    def _submit_form(
        self,
        form_index: int,
        fields: dict[str, str],
        timeout_seconds: float,
    ) -> tuple[str, str]:
        """
        Submit a form and return ``(final_url, html)`` of the resulting page.
        """

    @abstractmethod
    def _close(self) -> None:
        """
        Release every resource held by the session.
        """
