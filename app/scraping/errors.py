"""
Typed extraction failures.

Every failure the extraction driver can produce is one of these. The
``error_type`` code is what gets persisted on a failed ``ScraperResult``.
"""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for all extraction outcomes other than success."""

    error_type = "extraction"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InfrastructureError(ExtractionError):
    """Session could not be acquired or the target was unreachable."""

    error_type = "infrastructure"


class AuthenticationError(ExtractionError):
    """The portal rejected the stored credentials."""

    error_type = "authentication"


class NotFoundError(ExtractionError):
    """The searched subject does not exist on the portal. Expected, non-alerting."""

    error_type = "not_found"


class StructureError(ExtractionError):
    """The portal markup did not match any known structural anchor."""

    error_type = "structure"


class PartialExtractionError(ExtractionError):
    """
    Some data was retrieved and some was not.

    Never escapes the driver: gaps are reported on a successful result.
    """

    error_type = "partial"

    def __init__(self, message: str, *, year_month: str) -> None:
        super().__init__(message)
        self.year_month = year_month


class RunTimeoutError(ExtractionError):
    """The run exceeded its time budget or was cancelled."""

    error_type = "timeout"

    def __init__(self, message: str = "timeout") -> None:
        super().__init__(message)
