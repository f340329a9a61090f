"""
Portal session backends.
"""

from __future__ import annotations

from app.scraping.config.models import ScraperRuntimeSettings, SessionBackend
from app.scraping.errors import ExtractionError, InfrastructureError
from app.scraping.session.base import PortalSession, RunDeadline


def open_portal_session(settings: ScraperRuntimeSettings, deadline: RunDeadline) -> PortalSession:
    """
    Acquire a fresh, isolated session for one run.
    """

    deadline.check()
    try:
        if settings.session_backend == SessionBackend.HTTP:
            from app.scraping.session.http import HttpPortalSession

            return HttpPortalSession(settings=settings, deadline=deadline)

        from app.scraping.session.browser import BrowserPortalSession

        return BrowserPortalSession(settings=settings, deadline=deadline)
    except ExtractionError:
        raise
    except Exception as exc:
        raise InfrastructureError(f"Could not start {settings.session_backend} session: {exc}") from exc


__all__ = ["PortalSession", "RunDeadline", "open_portal_session"]
